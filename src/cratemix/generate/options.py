"""
Generation options and event presets.
"""

import logging
from dataclasses import dataclass, field, fields, asdict, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .energy import ENERGY_CURVES
from .errors import InvalidOptionsError
from .keys import parse_key, InvalidKeyError

logger = logging.getLogger(__name__)

# camelCase names accepted from callers that speak the JSON API dialect
_ALIASES = {
    "startKey": "start_key",
    "targetDuration": "target_duration",
    "energyCurve": "energy_curve",
    "preferredGenres": "preferred_genres",
    "excludeExplicit": "exclude_explicit",
    "allowKeyJumps": "allow_key_jumps",
    "minRating": "min_rating",
    "maxTracks": "max_tracks",
    "eventType": "event_type",
}


@dataclass(frozen=True)
class GenerationOptions:
    """Options for one playlist generation run."""

    start_key: str = "4A"
    target_duration: float = 3600
    energy_curve: str = "standard"
    preferred_genres: Tuple[str, ...] = field(default_factory=tuple)
    exclude_explicit: bool = True
    allow_key_jumps: bool = True
    min_rating: float = 0
    max_tracks: int = 50
    event_type: Optional[str] = None

    def __post_init__(self):
        # Accept any iterable of genres but store a tuple
        genres = self.preferred_genres
        if isinstance(genres, str):
            genres = (genres,)
        object.__setattr__(self, "preferred_genres", tuple(genres or ()))
        self.validate()

    def validate(self) -> None:
        """
        Check option values.

        Raises:
            InvalidOptionsError: If any option is out of range.
        """
        try:
            parse_key(self.start_key)
        except InvalidKeyError as e:
            raise InvalidOptionsError(f"Invalid start key: {e}") from e

        if self.energy_curve not in ENERGY_CURVES:
            raise InvalidOptionsError(
                f"Unknown energy curve {self.energy_curve!r}; expected one of {', '.join(ENERGY_CURVES)}"
            )
        for name in ("target_duration", "max_tracks", "min_rating"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidOptionsError(f"{name} must be a number, got {value!r}")

        if self.target_duration <= 0:
            raise InvalidOptionsError(f"target_duration must be positive, got {self.target_duration}")
        if self.max_tracks < 1:
            raise InvalidOptionsError(f"max_tracks must be at least 1, got {self.max_tracks}")
        if self.min_rating < 0:
            raise InvalidOptionsError(f"min_rating must be >= 0, got {self.min_rating}")

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], defaults: Optional["GenerationOptions"] = None
    ) -> "GenerationOptions":
        """
        Build options from a mapping of snake_case or camelCase names.

        Args:
            data: Option values; missing names keep their defaults
            defaults: Base options (defaults to GenerationOptions())

        Returns:
            GenerationOptions instance

        Raises:
            InvalidOptionsError: On unknown option names or bad values
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for name, value in data.items():
            name = _ALIASES.get(name, name)
            if name not in known:
                raise InvalidOptionsError(f"Unknown generation option: {name!r}")
            values[name] = value

        return replace(defaults or cls(), **values)

    def merged(self, overrides: Optional[Mapping[str, Any]] = None) -> "GenerationOptions":
        """Return a copy with `overrides` applied."""
        if not overrides:
            return self
        return GenerationOptions.from_dict(overrides, defaults=self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        data = asdict(self)
        data["preferred_genres"] = list(self.preferred_genres)
        return data


EVENT_PRESETS: Dict[str, Dict[str, Any]] = {
    "wedding-ceremony": {
        "energy_curve": "standard",
        "preferred_genres": ("Classical", "Acoustic", "Jazz"),
        "exclude_explicit": True,
        "start_key": "4A",
        "min_rating": 4,
    },
    "wedding-reception": {
        "energy_curve": "buildup",
        "preferred_genres": ("Pop", "R&B", "Classic Rock", "Dance"),
        "exclude_explicit": True,
        "start_key": "8A",
        "min_rating": 3,
    },
    "corporate-event": {
        "energy_curve": "plateau",
        "preferred_genres": ("Jazz", "Pop", "Electronic"),
        "exclude_explicit": True,
        "start_key": "6A",
        "min_rating": 3,
    },
    "club-night": {
        "energy_curve": "buildup",
        "preferred_genres": ("House", "Techno", "Electronic", "Hip Hop"),
        "exclude_explicit": False,
        "start_key": "9A",
        "min_rating": 4,
    },
    "dinner-party": {
        "energy_curve": "standard",
        "preferred_genres": ("Jazz", "Bossa Nova", "Acoustic"),
        "exclude_explicit": True,
        "start_key": "5A",
        "min_rating": 3,
    },
}

DEFAULT_EVENT = "dinner-party"


def event_options(
    event_type: str,
    duration: float,
    overrides: Optional[Mapping[str, Any]] = None,
    defaults: Optional[GenerationOptions] = None,
) -> GenerationOptions:
    """
    Build options for a named event preset.

    Precedence, lowest first: defaults, preset, duration, overrides.
    Unknown event types use the dinner-party preset.

    Args:
        event_type: Preset name (e.g., "club-night")
        duration: Target duration in seconds
        overrides: Caller-supplied option values
        defaults: Base options

    Returns:
        GenerationOptions instance
    """
    preset = EVENT_PRESETS.get(event_type)
    if preset is None:
        logger.warning(f"Unknown event type {event_type!r}; using {DEFAULT_EVENT} preset")
        preset = EVENT_PRESETS[DEFAULT_EVENT]

    options = GenerationOptions.from_dict(
        dict(preset, target_duration=duration, event_type=event_type),
        defaults=defaults,
    )
    return options.merged(overrides)
