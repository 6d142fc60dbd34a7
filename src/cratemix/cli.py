"""
cratemix command-line interface.

    cratemix generate --start-key 8A --minutes 90 --curve buildup
    cratemix event club-night --minutes 120 --output data/playlists
    cratemix stats
"""

import argparse
import json
import logging
import random
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Config, ConfigError
from .db import Database
from .generate.energy import ENERGY_CURVES
from .generate.errors import InvalidOptionsError, PlaylistGenerationError
from .generate.options import EVENT_PRESETS
from .generate.playlist import GeneratedPlaylist, PlaylistGenerator, write_playlist_json

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cratemix", description="Harmonic playlist generation")
    parser.add_argument("--config", help="Path to cratemix.toml")
    parser.add_argument("--db", help="Path to the SQLite library (overrides config)")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible playlists")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a harmonic playlist")
    gen.add_argument("--start-key", dest="start_key")
    gen.add_argument("--minutes", type=float, help="Target duration in minutes")
    gen.add_argument("--curve", dest="energy_curve", choices=ENERGY_CURVES)
    gen.add_argument("--genre", dest="preferred_genres", action="append", help="Repeatable")
    gen.add_argument("--allow-explicit", dest="exclude_explicit", action="store_false", default=None)
    gen.add_argument("--no-key-jumps", dest="allow_key_jumps", action="store_false", default=None)
    gen.add_argument("--min-rating", dest="min_rating", type=float)
    gen.add_argument("--max-tracks", dest="max_tracks", type=int)
    gen.add_argument("--output", help="JSON output file or directory")

    event = sub.add_parser("event", help="Generate a playlist from an event preset")
    event.add_argument("event_type", help=f"One of: {', '.join(EVENT_PRESETS)}")
    event.add_argument("--minutes", type=float, default=60, help="Target duration in minutes")
    event.add_argument("--start-key", dest="start_key")
    event.add_argument("--max-tracks", dest="max_tracks", type=int)
    event.add_argument("--output", help="JSON output file or directory")

    sub.add_parser("stats", help="Show library statistics")
    return parser


def _overrides(args: argparse.Namespace, names: List[str]) -> Dict[str, Any]:
    """Collect the option flags the user actually passed."""
    values = {name: getattr(args, name, None) for name in names}
    if getattr(args, "minutes", None) is not None and args.command == "generate":
        values["target_duration"] = args.minutes * 60
    return {k: v for k, v in values.items() if v is not None}


def _report(playlist: GeneratedPlaylist, output: Optional[str]) -> None:
    print(playlist.name)
    print(playlist.description)
    for entry in playlist.tracks:
        track = entry.track
        print(
            f"{entry.position:>3}. {track.artist or '?'} - {track.title or track.track_id} "
            f"[{track.key} {track.bpm:.0f}BPM E{track.energy_level}] "
            f"{entry.transition_type} ({entry.transition_quality:.2f})"
        )
    if output:
        path = write_playlist_json(playlist, Path(output))
        print(f"Saved: {path}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    )

    try:
        config = Config.load(args.config)
        db = Database(args.db or config.get("database", "path"), **config.candidate_settings())
        db.connect()
        try:
            if args.command == "stats":
                print(json.dumps(db.get_stats(), indent=2))
                return 0

            rng = random.Random(args.seed) if args.seed is not None else None
            generator = PlaylistGenerator(db, rng=rng, defaults=config.generation_defaults())

            if args.command == "event":
                playlist = generator.generate_event_playlist(
                    args.event_type,
                    args.minutes * 60,
                    _overrides(args, ["start_key", "max_tracks"]),
                )
            else:
                playlist = generator.generate_harmonic_playlist(
                    _overrides(
                        args,
                        [
                            "start_key",
                            "energy_curve",
                            "preferred_genres",
                            "exclude_explicit",
                            "allow_key_jumps",
                            "min_rating",
                            "max_tracks",
                        ],
                    )
                )

            playlist_id = f"cratemix-{playlist.generated_at.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:8]}"
            db.record_playlist(playlist_id, playlist.track_ids)
            _report(playlist, args.output)
            return 0
        finally:
            db.disconnect()

    except (ConfigError, InvalidOptionsError) as e:
        logger.error(str(e))
        return 2
    except PlaylistGenerationError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Generation interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
