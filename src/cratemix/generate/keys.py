"""
Camelot Key Compatibility: Pairwise harmonic scores for the 24 wheel keys.

Keys are written "<number><mode>" with number in 1-12 and mode A (minor)
or B (major). The matrix is computed once (all 576 ordered pairs) and
held read-only, so a single instance can be shared between concurrent
generation calls.

Scoring rules, first match wins:
- identical key                               1.0
- same number, other mode (relative)          0.9
- adjacent number (±1 / ±11), same mode       0.8
- adjacent number, other mode                 0.6
- number distance 5 or 7 (perfect fifth)      0.7
- number distance 6 (opposite on the wheel)   0.4
- anything else                               0.3
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

CAMELOT_KEYS: Tuple[str, ...] = tuple(
    f"{number}{mode}" for number in range(1, 13) for mode in ("A", "B")
)

KEY_INDEX: Dict[str, int] = {key: idx for idx, key in enumerate(CAMELOT_KEYS)}

# Standard notation -> Camelot (minor keys are "A", major keys are "B")
STANDARD_TO_CAMELOT_MAJOR = {
    "C": "8B",
    "C#": "3B",
    "Db": "3B",
    "D": "10B",
    "D#": "5B",
    "Eb": "5B",
    "E": "12B",
    "F": "7B",
    "F#": "2B",
    "Gb": "2B",
    "G": "9B",
    "G#": "4B",
    "Ab": "4B",
    "A": "11B",
    "A#": "6B",
    "Bb": "6B",
    "B": "1B",
}

STANDARD_TO_CAMELOT_MINOR = {
    "C": "5A",
    "C#": "12A",
    "Db": "12A",
    "D": "7A",
    "D#": "2A",
    "Eb": "2A",
    "E": "9A",
    "F": "4A",
    "F#": "11A",
    "Gb": "11A",
    "G": "6A",
    "G#": "1A",
    "Ab": "1A",
    "A": "8A",
    "A#": "3A",
    "Bb": "3A",
    "B": "10A",
}

_CAMELOT_RE = re.compile(r"^(1[0-2]|[1-9])([AaBb])$")
_STANDARD_RE = re.compile(r"^([A-Ga-g])([#b]?)\s*(m|min|minor|maj|major)?$")


class InvalidKeyError(ValueError):
    """Raised when a key label is not a Camelot wheel position."""
    pass


def parse_key(key: str) -> Tuple[int, str]:
    """
    Split a Camelot key into its number and mode letter.

    Args:
        key: Camelot key (e.g., "8B")

    Returns:
        Tuple (number, mode), e.g. (8, "B")

    Raises:
        InvalidKeyError: If the label is not one of the 24 wheel keys
    """
    if not isinstance(key, str):
        raise InvalidKeyError(f"Key must be a string, got {key!r}")

    match = _CAMELOT_RE.match(key.strip())
    if not match:
        raise InvalidKeyError(f"Not a Camelot key: {key!r}")

    return int(match.group(1)), match.group(2).upper()


def to_camelot(key: Optional[str]) -> Optional[str]:
    """
    Normalize a key label to Camelot notation.

    Accepts Camelot ("8a", "8A") and standard notation ("Am", "F#m",
    "C", "A minor", "Bb major").

    Args:
        key: Key label in any supported notation

    Returns:
        Camelot key, or None if the label is not recognized
    """
    if key is None:
        return None

    label = key.strip()
    if not label:
        return None

    try:
        number, mode = parse_key(label)
        return f"{number}{mode}"
    except InvalidKeyError:
        pass

    match = _STANDARD_RE.match(label)
    if not match:
        logger.debug(f"Unrecognized key notation: {key!r}")
        return None

    note = match.group(1).upper() + match.group(2)
    quality = (match.group(3) or "").lower()
    mapping = STANDARD_TO_CAMELOT_MINOR if quality in ("m", "min", "minor") else STANDARD_TO_CAMELOT_MAJOR
    return mapping.get(note)


def calculate_key_compatibility(key1: str, key2: str) -> float:
    """
    Score how well two Camelot keys mix (0.0-1.0).

    Distance is taken on the raw wheel numbers; the ±11 case covers the
    12 <-> 1 wrap.

    Args:
        key1: First Camelot key
        key2: Second Camelot key

    Returns:
        Compatibility score
    """
    num1, mode1 = parse_key(key1)
    num2, mode2 = parse_key(key2)
    distance = abs(num1 - num2)
    same_mode = mode1 == mode2

    if num1 == num2 and same_mode:
        return 1.0
    if num1 == num2:
        return 0.9
    if distance in (1, 11) and same_mode:
        return 0.8
    if distance in (1, 11):
        return 0.6
    if distance in (5, 7):
        return 0.7
    if distance == 6:
        return 0.4
    return 0.3


class KeyCompatibility:
    """
    Precomputed Camelot compatibility matrix.

    Immutable once built. Lookups involving a key that is not on the
    wheel score 0.0.
    """

    def __init__(self):
        matrix = np.zeros((len(CAMELOT_KEYS), len(CAMELOT_KEYS)), dtype=float)
        for i, key1 in enumerate(CAMELOT_KEYS):
            for j, key2 in enumerate(CAMELOT_KEYS):
                matrix[i, j] = calculate_key_compatibility(key1, key2)

        matrix.setflags(write=False)
        self._matrix = matrix
        logger.debug(f"Key compatibility matrix built ({matrix.size} pairs)")

    @property
    def matrix(self) -> np.ndarray:
        """Read-only 24x24 score array, indexed like CAMELOT_KEYS."""
        return self._matrix

    def score(self, key1: Optional[str], key2: Optional[str]) -> float:
        """
        Look up compatibility between two keys.

        Args:
            key1: Key being mixed out of
            key2: Key being mixed into

        Returns:
            Score in [0.0, 1.0]; 0.0 when either key is unknown
        """
        i = KEY_INDEX.get(key1)
        j = KEY_INDEX.get(key2)
        if i is None or j is None:
            return 0.0
        return float(self._matrix[i, j])

    def compatible_keys(self, key: str, threshold: float = 0.6) -> List[Tuple[str, float]]:
        """
        List wheel keys that mix with `key` at or above a threshold.

        Args:
            key: Reference Camelot key
            threshold: Minimum score to include

        Returns:
            List of (key, score) tuples, best first
        """
        number, mode = parse_key(key)
        row = self._matrix[KEY_INDEX[f"{number}{mode}"]]
        ranked = [
            (CAMELOT_KEYS[j], float(row[j]))
            for j in np.argsort(-row, kind="stable")
            if row[j] >= threshold
        ]
        return ranked

    def __repr__(self) -> str:
        return f"KeyCompatibility(keys={len(CAMELOT_KEYS)})"


_default_compatibility: Optional[KeyCompatibility] = None


def default_compatibility() -> KeyCompatibility:
    """Return the shared process-wide matrix, building it on first use."""
    global _default_compatibility
    if _default_compatibility is None:
        _default_compatibility = KeyCompatibility()
    return _default_compatibility
