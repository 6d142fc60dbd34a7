"""
Harmonic Playlist Generation (orchestrator).

- Queries the track store once for the candidate pool
- Runs the harmonic sequencer and computes playlist metrics
- Names and describes the result; exports it as JSON
- Event presets (wedding, club night, ...) layered over caller options
"""

import json
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from ..db import Track
from .errors import PlaylistGenerationError
from .keys import KeyCompatibility, default_compatibility
from .options import GenerationOptions, event_options
from .selector import HarmonicSequencer
from .transitions import PlaylistMetrics, PlaylistTrack

logger = logging.getLogger(__name__)

ALGORITHM_VERSION = "2.0.0"


class TrackStore(Protocol):
    """Read-only candidate query the generator needs from a track store."""

    def get_candidate_tracks(
        self,
        genres: Tuple[str, ...] = (),
        exclude_explicit: bool = True,
        min_rating: float = 0,
        rng: Optional[random.Random] = None,
    ) -> List[Track]:
        ...


@dataclass(frozen=True)
class GeneratedPlaylist:
    """A generated playlist with its metrics and metadata."""

    name: str
    description: str
    tracks: Tuple[PlaylistTrack, ...]
    metrics: PlaylistMetrics
    options: GenerationOptions
    generated_at: datetime
    algorithm_version: str = ALGORITHM_VERSION

    @property
    def total_duration(self) -> float:
        return self.metrics.total_duration

    @property
    def avg_bpm(self) -> int:
        return self.metrics.avg_bpm

    @property
    def energy_curve(self) -> Tuple[int, ...]:
        return self.metrics.energy_curve

    @property
    def harmonic_flow_score(self) -> float:
        return self.metrics.harmonic_flow_score

    @property
    def transition_quality(self) -> float:
        return self.metrics.transition_quality

    @property
    def track_ids(self) -> List[str]:
        return [t.track_id for t in self.tracks]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        data = {
            "name": self.name,
            "description": self.description,
            "tracks": [t.to_dict() for t in self.tracks],
        }
        data.update(self.metrics.to_dict())
        data["metadata"] = {
            "generated_at": self.generated_at.isoformat(),
            "options": self.options.to_dict(),
            "algorithm_version": self.algorithm_version,
        }
        return data


def playlist_name(options: GenerationOptions, metrics: PlaylistMetrics) -> str:
    """E.g. "buildup Mix - House (62min @ 124BPM)"."""
    name = f"{options.energy_curve or 'Standard'} Mix"
    if options.preferred_genres:
        name += f" - {options.preferred_genres[0]}"
    name += f" ({round(metrics.total_duration / 60)}min @ {metrics.avg_bpm}BPM)"
    return name


def playlist_description(options: GenerationOptions, metrics: PlaylistMetrics) -> str:
    description = (
        f"Generated harmonic playlist with {len(metrics.energy_curve)} tracks. "
        f"Total duration: {round(metrics.total_duration / 60)} minutes. "
        f"Average BPM: {metrics.avg_bpm}. "
        f"Harmonic flow score: {metrics.harmonic_flow_score * 100:.1f}%. "
        f"Transition quality: {metrics.transition_quality * 100:.1f}%."
    )
    if options.preferred_genres:
        description += f" Focused on: {', '.join(options.preferred_genres)}."
    return description


class PlaylistGenerator:
    """
    Harmonic playlist generator.

    Stateless between calls apart from the shared, read-only
    compatibility matrix, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        store: TrackStore,
        compatibility: Optional[KeyCompatibility] = None,
        rng: Optional[random.Random] = None,
        defaults: Optional[GenerationOptions] = None,
    ):
        """
        Args:
            store: Track store providing get_candidate_tracks()
            compatibility: Key compatibility matrix (shared default if None)
            rng: Random source for tie-breaking and top-candidate picks
            defaults: Base options that caller options are layered over
        """
        self.store = store
        self.compatibility = compatibility or default_compatibility()
        self.rng = rng or random.Random()
        self.defaults = defaults or GenerationOptions()
        logger.info("PlaylistGenerator initialized")

    def _coerce_options(self, options: Any) -> GenerationOptions:
        if options is None:
            return self.defaults
        if isinstance(options, GenerationOptions):
            return options
        return GenerationOptions.from_dict(options, defaults=self.defaults)

    def generate_harmonic_playlist(self, options: Any = None) -> GeneratedPlaylist:
        """
        Generate a harmonic playlist.

        Args:
            options: GenerationOptions, or a mapping of option values
                layered over the generator defaults

        Returns:
            GeneratedPlaylist

        Raises:
            EmptyCandidatePoolError: If no tracks match the filters
            NoStartingTrackError: If no opening track can be chosen
            InvalidOptionsError: If the options are malformed
            PlaylistGenerationError: On any other failure
        """
        started = time.monotonic()

        try:
            options = self._coerce_options(options)
            logger.info(f"🎵 Generating harmonic playlist with options: {options}")

            candidates = self.store.get_candidate_tracks(
                genres=options.preferred_genres,
                exclude_explicit=options.exclude_explicit,
                min_rating=options.min_rating,
                rng=self.rng,
            )
            logger.info(f"Found {len(candidates)} candidate tracks")

            sequencer = HarmonicSequencer(self.compatibility, self.rng)
            tracks = sequencer.build_sequence(
                candidates,
                options.start_key,
                options.target_duration,
                options.energy_curve,
                options.allow_key_jumps,
                options.max_tracks,
            )
            metrics = PlaylistMetrics.from_tracks(tracks)
        except PlaylistGenerationError as e:
            logger.error(f"Playlist generation failed: {e}")
            raise
        except Exception as e:
            logger.error(f"Playlist generation failed: {e}", exc_info=True)
            raise PlaylistGenerationError(f"Playlist generation failed: {e}") from e

        playlist = GeneratedPlaylist(
            name=playlist_name(options, metrics),
            description=playlist_description(options, metrics),
            tracks=tracks,
            metrics=metrics,
            options=options,
            generated_at=datetime.now(timezone.utc),
        )

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"✅ Playlist generated in {elapsed_ms:.0f}ms: {len(tracks)} tracks, "
            f"{round(metrics.total_duration / 60)} minutes"
        )
        return playlist

    def generate_event_playlist(
        self,
        event_type: str,
        duration: float,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> GeneratedPlaylist:
        """
        Generate a playlist from a named event preset.

        Args:
            event_type: Preset name (e.g., "wedding-ceremony", "club-night")
            duration: Target duration in seconds
            overrides: Option values that take precedence over the preset

        Returns:
            GeneratedPlaylist
        """
        options = event_options(event_type, duration, overrides, defaults=self.defaults)
        return self.generate_harmonic_playlist(options)


def write_playlist_json(playlist: GeneratedPlaylist, output_path: Path) -> Path:
    """
    Write a generated playlist as JSON.

    Args:
        playlist: Generated playlist
        output_path: Output file, or a directory to write a timestamped file into

    Returns:
        Path of the written file
    """
    output_path = Path(output_path)
    if output_path.is_dir():
        stamp = playlist.generated_at.strftime("%Y%m%d-%H%M%S")
        output_path = output_path / f"playlist-{stamp}.json"

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(playlist.to_dict(), f, indent=2)

    logger.info(f"Wrote playlist: {output_path}")
    return output_path
