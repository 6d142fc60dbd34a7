"""
Harmonic Sequencer: Greedy track selection for playlist generation.

- Opening track: exact start-key match, else a compatible key (>= 0.6),
  else the whole pool; best rating*2 + play_count*0.1 wins
- Greedy growth, no backtracking: score every unused candidate, keep the
  top 5, pick one at random for variety
- Stops at the target duration, at max_tracks, or when nothing qualifies
- Output: annotated, post-processed sequence of PlaylistTrack
"""

import logging
import random
from typing import List, Optional, Sequence, Set, Tuple

from ..db import Track
from .energy import target_energy
from .errors import EmptyCandidatePoolError, NoStartingTrackError
from .keys import KeyCompatibility, default_compatibility
from .transitions import PlaylistTrack, annotate, optimize_transitions

logger = logging.getLogger(__name__)

# Opening-track fallback threshold against the requested start key
START_KEY_THRESHOLD = 0.6
# Below this compatibility a move is a key jump
KEY_JUMP_THRESHOLD = 0.5
# Number of best-scoring candidates the random pick draws from
TOP_CANDIDATES = 5
# How many preceding tracks the variety bonus looks at
VARIETY_WINDOW = 3

KEY_WEIGHT = 40
ENERGY_WEIGHT = 3
QUALITY_WEIGHT = 2
ARTIST_VARIETY_BONUS = 10
GENRE_VARIETY_BONUS = 5


class HarmonicSequencer:
    """
    Greedy harmonic track sequencer.

    Holds only read-only collaborators (the compatibility matrix and the
    random source); all per-run state lives inside build_sequence.
    """

    def __init__(
        self,
        compatibility: Optional[KeyCompatibility] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            compatibility: Key compatibility matrix (shared default if None)
            rng: Random source for the top-candidate pick; pass a seeded
                random.Random for reproducible playlists
        """
        self.compatibility = compatibility or default_compatibility()
        self.rng = rng or random.Random()

    def find_starting_track(self, tracks: Sequence[Track], start_key: str) -> Optional[Track]:
        """
        Choose the opening track.

        Ties on quality go to the earliest track in pool order.

        Args:
            tracks: Candidate pool
            start_key: Requested opening key

        Returns:
            Opening track, or None if the pool is empty
        """
        candidates = [t for t in tracks if t.key == start_key]

        if not candidates:
            candidates = [
                t for t in tracks
                if self.compatibility.score(start_key, t.key) >= START_KEY_THRESHOLD
            ]
            if candidates:
                logger.debug(f"No track in {start_key}; {len(candidates)} in compatible keys")

        if not candidates:
            logger.debug(f"No track compatible with {start_key}; using whole pool")
            candidates = list(tracks)

        if not candidates:
            return None

        # max() keeps the first of equal elements
        return max(candidates, key=lambda t: t.quality)

    def score_track(
        self,
        candidate: Track,
        current_key: str,
        energy_target: int,
        allow_key_jumps: bool,
        sequence: Sequence[Track],
    ) -> float:
        """
        Score a candidate for the next position (higher is better).

        Components:
        - key compatibility x40 (0 overall if key jumps are off and < 0.5)
        - energy match: max(0, 10 - |energy - target| * 3) x3
        - quality: (rating*4 + min(10, play_count*0.1)) x2
        - variety: +10 new artist, +5 genre not repeated in last 3
        - tempo vs previous track: +15 within 5 BPM, +10 within 10,
          -10 beyond 20

        Args:
            candidate: Track being scored
            current_key: Key of the last placed track
            energy_target: Target energy at this position
            allow_key_jumps: Whether incompatible keys may follow
            sequence: Tracks placed so far

        Returns:
            Score, 0.0 if disqualified
        """
        key_compatibility = self.compatibility.score(current_key, candidate.key)
        if not allow_key_jumps and key_compatibility < KEY_JUMP_THRESHOLD:
            return 0.0

        score = key_compatibility * KEY_WEIGHT

        energy_diff = abs(candidate.energy_level - energy_target)
        score += max(0.0, 10 - energy_diff * 3) * ENERGY_WEIGHT

        quality = (candidate.rating or 0) * 4 + min(10.0, (candidate.play_count or 0) * 0.1)
        score += quality * QUALITY_WEIGHT

        recent = sequence[-VARIETY_WINDOW:]
        if not any(t.artist == candidate.artist for t in recent):
            score += ARTIST_VARIETY_BONUS
        if sum(1 for t in recent if t.genre == candidate.genre) <= 1:
            score += GENRE_VARIETY_BONUS

        if sequence:
            bpm_diff = abs(candidate.bpm - sequence[-1].bpm)
            if bpm_diff <= 5:
                score += 15
            elif bpm_diff <= 10:
                score += 10
            elif bpm_diff > 20:
                score -= 10

        return score

    def choose_next(
        self,
        candidates: Sequence[Track],
        used: Set[str],
        current_key: str,
        energy_target: int,
        allow_key_jumps: bool,
        sequence: Sequence[Track],
    ) -> Optional[Tuple[Track, float]]:
        """
        Pick the next track at random among the best-scoring candidates.

        Args:
            candidates: Candidate pool
            used: IDs already placed
            current_key: Key of the last placed track
            energy_target: Target energy at this position
            allow_key_jumps: Whether incompatible keys may follow
            sequence: Tracks placed so far

        Returns:
            Tuple (track, score), or None if no candidate qualifies
        """
        scored = []
        for candidate in candidates:
            if candidate.track_id in used:
                continue
            if not allow_key_jumps and (
                self.compatibility.score(current_key, candidate.key) < KEY_JUMP_THRESHOLD
            ):
                continue
            score = self.score_track(
                candidate, current_key, energy_target, allow_key_jumps, sequence
            )
            scored.append((candidate, score))

        if not scored:
            logger.debug("No qualifying candidates")
            return None

        scored.sort(key=lambda item: item[1], reverse=True)
        top = scored[:TOP_CANDIDATES]
        chosen, score = top[self.rng.randrange(len(top))]

        logger.debug(
            f"Chose {chosen.track_id} (key: {chosen.key}, energy: {chosen.energy_level}, "
            f"score: {score:.1f}, pool: {len(scored)})"
        )
        return chosen, score

    def select_tracks(
        self,
        candidates: Sequence[Track],
        start_key: str,
        target_duration: float,
        energy_curve: str = "standard",
        allow_key_jumps: bool = True,
        max_tracks: int = 50,
    ) -> List[Track]:
        """
        Run the greedy selection loop.

        Args:
            candidates: Candidate pool (best first)
            start_key: Requested opening key
            target_duration: Target mix duration in seconds
            energy_curve: Energy curve name
            allow_key_jumps: Whether incompatible keys may follow
            max_tracks: Maximum number of tracks

        Returns:
            Tracks in playback order (at least one)

        Raises:
            EmptyCandidatePoolError: If `candidates` is empty
            NoStartingTrackError: If no opening track can be chosen
        """
        if not candidates:
            raise EmptyCandidatePoolError("No suitable tracks found for playlist generation")

        first = self.find_starting_track(candidates, start_key)
        if first is None:
            raise NoStartingTrackError(f"No suitable starting track found for key {start_key}")

        sequence = [first]
        used = {first.track_id}
        total_duration = first.duration
        current_key = first.key

        logger.info(
            f"Starting with {first.track_id} ({first.key}, {first.bpm} BPM) "
            f"(target: {target_duration}s, curve: {energy_curve})"
        )

        while (
            total_duration < target_duration
            and len(sequence) < max_tracks
            and len(used) < len(candidates)
        ):
            progress = total_duration / target_duration
            energy_target = target_energy(progress, energy_curve)

            result = self.choose_next(
                candidates, used, current_key, energy_target, allow_key_jumps, sequence
            )
            if result is None:
                logger.warning("No suitable next track found; ending playlist early")
                break

            track, _ = result
            sequence.append(track)
            used.add(track.track_id)
            total_duration += track.duration
            current_key = track.key

            logger.debug(
                f"Position {len(sequence)}: {track.track_id} "
                f"(progress: {progress:.2f}, target energy: {energy_target}, "
                f"total: {total_duration:.0f}s)"
            )

        return sequence

    def annotate_sequence(self, tracks: Sequence[Track], start_key: str) -> Tuple[PlaylistTrack, ...]:
        """
        Attach transition data to a selected sequence.

        The opener is compared against `start_key`; every later track
        against its predecessor. The post-processing pass runs last.

        Args:
            tracks: Tracks in playback order
            start_key: Requested opening key

        Returns:
            Annotated, post-processed sequence
        """
        annotated = []
        previous: Optional[Track] = None
        current_key = start_key

        for position, track in enumerate(tracks, start=1):
            annotated.append(annotate(track, position, previous, current_key, self.compatibility))
            previous = track
            current_key = track.key

        return optimize_transitions(annotated, self.compatibility)

    def build_sequence(
        self,
        candidates: Sequence[Track],
        start_key: str,
        target_duration: float,
        energy_curve: str = "standard",
        allow_key_jumps: bool = True,
        max_tracks: int = 50,
    ) -> Tuple[PlaylistTrack, ...]:
        """
        Build an annotated harmonic sequence from a candidate pool.

        Args:
            candidates: Candidate pool (best first)
            start_key: Requested opening key
            target_duration: Target mix duration in seconds
            energy_curve: Energy curve name
            allow_key_jumps: Whether incompatible keys may follow
            max_tracks: Maximum number of tracks

        Returns:
            Annotated sequence of PlaylistTrack

        Raises:
            EmptyCandidatePoolError: If `candidates` is empty
            NoStartingTrackError: If no opening track can be chosen
        """
        tracks = self.select_tracks(
            candidates, start_key, target_duration, energy_curve, allow_key_jumps, max_tracks
        )
        sequence = self.annotate_sequence(tracks, start_key)

        total = sum(t.duration for t in tracks)
        logger.info(
            f"✅ Sequence built: {len(sequence)} tracks, "
            f"{total:.0f}s ({total / 60:.1f}min)"
        )
        return sequence
