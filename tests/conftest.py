"""
Shared fixtures for cratemix tests.
"""

import random

import pytest

from cratemix.db import Track
from cratemix.generate.keys import CAMELOT_KEYS


def _make_track(track_id="track-1", key="4A", bpm=120.0, energy=5, duration=240, **kwargs):
    return Track(
        track_id=track_id,
        duration=duration,
        bpm=bpm,
        key=key,
        energy_level=energy,
        **kwargs,
    )


@pytest.fixture
def make_track():
    """Factory for Track records with mixable defaults."""
    return _make_track


@pytest.fixture
def random_pool():
    """Factory for a reproducible, varied candidate pool."""

    def build(size=30, seed=0):
        rng = random.Random(seed)
        return [
            _make_track(
                track_id=f"track-{i}",
                key=rng.choice(CAMELOT_KEYS),
                bpm=float(rng.randint(110, 140)),
                energy=rng.randint(1, 10),
                duration=rng.randint(120, 600),
                rating=rng.randint(0, 5),
                play_count=rng.randint(0, 200),
                artist=f"Artist {rng.randint(1, 8)}",
                genre=rng.choice(["House", "Techno", "Disco", "Garage"]),
            )
            for i in range(size)
        ]

    return build
