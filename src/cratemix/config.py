"""
Configuration management for cratemix.

Loads and validates TOML config against strict bounds.
All tunable parameters are bounded and validated at startup.
"""

import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional
import toml
import logging

from .generate.errors import InvalidOptionsError
from .generate.options import GenerationOptions

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when config validation fails."""
    pass


class Config:
    """Configuration loader and validator."""

    PARAM_BOUNDS = {
        "generation": {
            "start_key": None,
            "target_duration_minutes": (5, 480),
            "energy_curve": None,
            "exclude_explicit": None,
            "allow_key_jumps": None,
            "min_rating": (0, 5),
            "max_tracks": (1, 500),
        },
        "candidates": {
            "min_duration": (30, 1800),
            "max_duration": (60, 3600),
            "shuffle_ties": None,
        },
        "database": {
            "path": None,
        },
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "generation": {
            "start_key": "4A",
            "target_duration_minutes": 60,
            "energy_curve": "standard",
            "exclude_explicit": True,
            "allow_key_jumps": True,
            "min_rating": 0,
            "max_tracks": 50,
        },
        "candidates": {
            "min_duration": 120,
            "max_duration": 600,
            "shuffle_ties": True,
        },
        "database": {
            "path": "data/db/library.sqlite",
        },
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to cratemix.toml. If None, uses CRATEMIX_CONFIG_PATH
                        env var or defaults to configs/cratemix.toml.

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or unreadable.
        """
        if config_path is None:
            config_path = os.getenv("CRATEMIX_CONFIG_PATH", "configs/cratemix.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls(copy.deepcopy(cls.DEFAULT_CONFIG))

        try:
            config_dict = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}") from e

        logger.info(f"Loaded config from {config_path}")
        return cls(config_dict)

    def _validate(self) -> None:
        """
        Validate all config parameters against PARAM_BOUNDS.

        Raises:
            ConfigError: If any parameter is out of bounds.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG.get(section, {}))
                continue

            section_data = self.data[section]

            for param, bounds in params.items():
                if param not in section_data:
                    default_val = self.DEFAULT_CONFIG.get(section, {}).get(param)
                    if default_val is not None:
                        logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                        section_data[param] = default_val
                    continue

                value = section_data[param]

                # Non-numeric params are checked when options are built
                if bounds is None:
                    continue

                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value!r} must be a number"
                    )

                min_val, max_val = bounds
                if not (min_val <= value <= max_val):
                    raise ConfigError(
                        f"Parameter {section}.{param}={value} out of bounds "
                        f"[{min_val}, {max_val}]"
                    )

        candidates = self.data["candidates"]
        if candidates["min_duration"] > candidates["max_duration"]:
            raise ConfigError(
                f"candidates.min_duration={candidates['min_duration']} exceeds "
                f"candidates.max_duration={candidates['max_duration']}"
            )

        logger.debug("✅ Config validation passed")

    def generation_defaults(self) -> GenerationOptions:
        """
        Build default generation options from the [generation] section.

        Raises:
            ConfigError: If the section holds invalid option values.
        """
        section = self["generation"]
        try:
            return GenerationOptions(
                start_key=section["start_key"],
                target_duration=section["target_duration_minutes"] * 60,
                energy_curve=section["energy_curve"],
                preferred_genres=tuple(section.get("preferred_genres", ())),
                exclude_explicit=section["exclude_explicit"],
                allow_key_jumps=section["allow_key_jumps"],
                min_rating=section["min_rating"],
                max_tracks=section["max_tracks"],
            )
        except InvalidOptionsError as e:
            raise ConfigError(f"Invalid [generation] settings: {e}") from e

    def candidate_settings(self) -> Dict[str, Any]:
        """Keyword arguments for Database: candidate duration window and tie-break."""
        section = self["candidates"]
        return {
            "min_duration": section["min_duration"],
            "max_duration": section["max_duration"],
            "shuffle_ties": bool(section["shuffle_ties"]),
        }

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["generation"]"""
        return self.data.get(section, {})

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"
