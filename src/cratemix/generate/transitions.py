"""
Transition annotations and playlist metrics.

- Mix-in / mix-out timing from intro/outro hints and tempo closeness
- Transition labels and quality scores between consecutive tracks
- Post-processing pass refining quality with full sequence context
- Aggregate metrics over the final sequence
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from ..db import Track
from .energy import energy_flow_score
from .keys import KeyCompatibility

logger = logging.getLogger(__name__)

# Quality above which a transition is mixed faster in post-processing
FAST_MIX_QUALITY = 0.8
FAST_MIX_FACTOR = 0.8


@dataclass(frozen=True)
class PlaylistTrack:
    """A track placed in a generated playlist, with transition data."""

    track: Track
    position: int
    transition_type: str
    transition_quality: float
    mix_in_time: float
    mix_out_time: float
    harmonic_compatibility: float
    energy_flow_score: float

    @property
    def track_id(self) -> str:
        return self.track.track_id

    @property
    def key(self) -> Optional[str]:
        return self.track.key

    @property
    def bpm(self) -> float:
        return self.track.bpm

    @property
    def energy_level(self) -> int:
        return self.track.energy_level

    @property
    def duration(self) -> float:
        return self.track.duration

    @property
    def artist(self) -> Optional[str]:
        return self.track.artist

    @property
    def genre(self) -> Optional[str]:
        return self.track.genre

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict (track fields flattened)."""
        data = self.track.to_dict()
        data.update(
            {
                "position": self.position,
                "transition_type": self.transition_type,
                "transition_quality": self.transition_quality,
                "mix_in_time": self.mix_in_time,
                "mix_out_time": self.mix_out_time,
                "harmonic_compatibility": self.harmonic_compatibility,
                "energy_flow_score": self.energy_flow_score,
            }
        )
        return data


def mix_in_time(track: Track, previous: Optional[Track]) -> float:
    """
    Estimate how long to blend into a track.

    Base is the declared intro, or 10% of the track capped at 16s.
    Close tempos mix faster: x0.5 within 3 BPM, x0.75 within 10 BPM.

    Args:
        track: Incoming track
        previous: Outgoing track, or None for the opening track

    Returns:
        Mix-in time in seconds (0 for the opening track)
    """
    if previous is None:
        return 0.0

    base = track.intro_time or min(16.0, track.duration * 0.1)
    bpm_diff = abs(track.bpm - previous.bpm)
    if bpm_diff <= 3:
        return base * 0.5
    if bpm_diff <= 10:
        return base * 0.75
    return base


def mix_out_time(track: Track) -> float:
    """Declared outro, or 15% of the track capped at 32s."""
    return track.outro_time or min(32.0, track.duration * 0.15)


def transition_type(from_key: Optional[str], to_key: Optional[str], compatibility: float) -> str:
    """
    Label a key change.

    Args:
        from_key: Key being mixed out of
        to_key: Key being mixed into
        compatibility: Score between the two keys

    Returns:
        Human-readable transition label
    """
    if from_key == to_key:
        return "Same Key"
    if compatibility >= 0.9:
        return "Relative"
    if compatibility >= 0.8:
        return "Adjacent"
    if compatibility >= 0.7:
        return "Perfect Fifth"
    if compatibility >= 0.6:
        return "Compatible"
    if compatibility >= 0.4:
        return "Energy Change"
    return "Key Jump"


def transition_quality(track: Track, previous: Optional[Track], compatibility: float) -> float:
    """
    Score a transition between two tracks (0.0-1.0).

    Starts at 0.5, adds 30% of the key compatibility, then adjusts for
    tempo (+0.2 within 3 BPM, +0.1 within 10, -0.2 beyond 20) and energy
    (+0.1 within one level, -0.1 beyond two).

    Args:
        track: Incoming track
        previous: Outgoing track, or None for the opening track
        compatibility: Key compatibility of previous -> track

    Returns:
        Quality score, 1.0 for the opening track
    """
    if previous is None:
        return 1.0

    quality = 0.5 + compatibility * 0.3

    bpm_diff = abs(track.bpm - previous.bpm)
    if bpm_diff <= 3:
        quality += 0.2
    elif bpm_diff <= 10:
        quality += 0.1
    elif bpm_diff > 20:
        quality -= 0.2

    energy_diff = abs(track.energy_level - previous.energy_level)
    if energy_diff <= 1:
        quality += 0.1
    elif energy_diff > 2:
        quality -= 0.1

    return max(0.0, min(1.0, quality))


def annotate(
    track: Track,
    position: int,
    previous: Optional[Track],
    current_key: str,
    compatibility: KeyCompatibility,
) -> PlaylistTrack:
    """
    Wrap a track with its transition data.

    Args:
        track: Track being placed
        position: 1-based position in the playlist
        previous: Preceding track, or None for the opening track
        current_key: Key being mixed out of (the start key for the opener)
        compatibility: Key compatibility matrix

    Returns:
        PlaylistTrack
    """
    harmonic = compatibility.score(current_key, track.key)
    return PlaylistTrack(
        track=track,
        position=position,
        transition_type=transition_type(current_key, track.key, harmonic),
        transition_quality=transition_quality(
            track,
            previous,
            compatibility.score(previous.key, track.key) if previous else harmonic,
        ),
        mix_in_time=mix_in_time(track, previous),
        mix_out_time=mix_out_time(track),
        harmonic_compatibility=harmonic,
        energy_flow_score=energy_flow_score(
            track.energy_level, previous.energy_level if previous else None
        ),
    )


def optimize_transitions(
    playlist: Sequence[PlaylistTrack], compatibility: KeyCompatibility
) -> Tuple[PlaylistTrack, ...]:
    """
    Refine transitions using the finished sequence.

    Recomputes each transition's quality from its predecessor and mixes
    high-quality transitions (> 0.8) faster by shortening mix-in by 20%.
    The input is left untouched.

    Args:
        playlist: Annotated sequence
        compatibility: Key compatibility matrix

    Returns:
        New annotated sequence
    """
    if not playlist:
        return ()

    optimized = [playlist[0]]
    fast_mixes = 0

    for previous, current in zip(playlist, playlist[1:]):
        quality = transition_quality(
            current.track, previous.track, compatibility.score(previous.key, current.key)
        )
        mix_in = current.mix_in_time
        if quality > FAST_MIX_QUALITY:
            mix_in *= FAST_MIX_FACTOR
            fast_mixes += 1

        optimized.append(replace(current, transition_quality=quality, mix_in_time=mix_in))

    logger.debug(f"Optimized {len(optimized) - 1} transitions ({fast_mixes} fast mixes)")
    return tuple(optimized)


@dataclass(frozen=True)
class PlaylistMetrics:
    """Aggregate metrics over a generated sequence."""

    total_duration: float
    avg_bpm: int
    energy_curve: Tuple[int, ...]
    harmonic_flow_score: float
    transition_quality: float

    @classmethod
    def from_tracks(cls, tracks: Sequence[PlaylistTrack]) -> "PlaylistMetrics":
        """
        Compute metrics for a sequence.

        Raises:
            ValueError: If the sequence is empty.
        """
        if not tracks:
            raise ValueError("Cannot compute metrics for an empty playlist")

        avg_bpm = float(np.mean([t.bpm for t in tracks]))
        return cls(
            total_duration=float(sum(t.duration for t in tracks)),
            # Round half up
            avg_bpm=int(math.floor(avg_bpm + 0.5)),
            energy_curve=tuple(t.energy_level for t in tracks),
            harmonic_flow_score=float(np.mean([t.harmonic_compatibility for t in tracks])),
            transition_quality=float(np.mean([t.transition_quality for t in tracks])),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_duration": self.total_duration,
            "avg_bpm": self.avg_bpm,
            "energy_curve": list(self.energy_curve),
            "harmonic_flow_score": self.harmonic_flow_score,
            "transition_quality": self.transition_quality,
        }
