"""
Unit tests for the SQLite track store.

Tests CRUD, the candidate query filters and ordering, and history.
"""

import random

import pytest
from cratemix.db import Database


@pytest.fixture
def database(tmp_path):
    """Fresh database in a temp directory."""
    db = Database(str(tmp_path / "db" / "library.sqlite"))
    db.connect()
    yield db
    db.disconnect()


def _ids(tracks):
    return sorted(t.track_id for t in tracks)


class TestTrackCrud:
    """Test basic track storage."""

    def test_add_and_get(self, database, make_track):
        """All track fields survive a write and read."""
        track = make_track(
            "t1",
            key="8A",
            bpm=124.5,
            energy=7,
            title="Night Drive",
            artist="DJ",
            genre="House",
            rating=4,
            play_count=12,
            explicit=True,
            intro_time=8.0,
            outro_time=16.0,
            file_path="/music/t1.mp3",
        )
        database.add_track(track)
        assert database.get_track("t1") == track

    def test_get_missing(self, database):
        """Unknown IDs return None."""
        assert database.get_track("nope") is None

    def test_replace(self, database, make_track):
        """Adding an existing ID replaces the row."""
        database.add_track(make_track("t1", rating=1))
        database.add_track(make_track("t1", rating=5))
        assert database.get_track("t1").rating == 5
        assert len(database.list_tracks()) == 1

    def test_add_tracks_bulk(self, database, make_track):
        """Bulk insert reports the number written."""
        count = database.add_tracks([make_track(f"t{i}") for i in range(5)])
        assert count == 5
        assert len(database.list_tracks()) == 5

    def test_list_filters(self, database, make_track):
        """list_tracks filters by key and BPM range."""
        database.add_tracks(
            [
                make_track("a", key="4A", bpm=120.0),
                make_track("b", key="5A", bpm=128.0),
                make_track("c", key="4A", bpm=140.0),
            ]
        )
        assert _ids(database.list_tracks(key="4A")) == ["a", "c"]
        assert _ids(database.list_tracks(key="Fm")) == ["a", "c"]
        assert _ids(database.list_tracks(bpm_range=(125, 141))) == ["b", "c"]

    def test_delete(self, database, make_track):
        """Delete reports whether a row was removed."""
        database.add_track(make_track("t1"))
        assert database.delete_track("t1") is True
        assert database.delete_track("t1") is False
        assert database.get_track("t1") is None

    def test_record_play(self, database, make_track):
        """record_play increments the play count."""
        database.add_track(make_track("t1", play_count=3))
        database.record_play("t1")
        assert database.get_track("t1").play_count == 4

    def test_context_manager(self, tmp_path, make_track):
        """Context manager connects and disconnects."""
        with Database(str(tmp_path / "ctx.sqlite")) as db:
            db.add_track(make_track("t1"))
            assert db.conn is not None
        assert db.conn is None

    def test_schema_survives_reconnect(self, tmp_path, make_track):
        """Data persists across connections."""
        path = str(tmp_path / "persist.sqlite")
        with Database(path) as db:
            db.add_track(make_track("t1"))
        with Database(path) as db:
            assert db.get_track("t1") is not None


class TestKeyNormalization:
    """Test that keys are stored in Camelot notation."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Am", "8A"),
            ("4a", "4A"),
            ("F#m", "11A"),
            ("C major", "8B"),
            (" 12b ", "12B"),
        ],
    )
    def test_stored_as_camelot(self, database, make_track, label, expected):
        """Standard and lowercase labels read back as Camelot keys."""
        database.add_track(make_track("t1", key=label))
        assert database.get_track("t1").key == expected

    def test_unrecognized_key_stored_as_none(self, database, make_track):
        """Unparseable labels are dropped, so the track is not a candidate."""
        database.add_tracks([make_track("ok", key="8A"), make_track("bad", key="H-dorian")])

        assert database.get_track("bad").key is None
        assert _ids(database.get_candidate_tracks()) == ["ok"]


class TestCandidateQuery:
    """Test the candidate pool query."""

    def test_genre_filter(self, database, make_track):
        """Only listed genres are returned; no genres means any."""
        database.add_tracks(
            [
                make_track("house", genre="House"),
                make_track("disco", genre="Disco"),
                make_track("jazz", genre="Jazz"),
            ]
        )
        assert _ids(database.get_candidate_tracks(genres=["House", "Disco"])) == ["disco", "house"]
        assert len(database.get_candidate_tracks()) == 3

    def test_explicit_filter(self, database, make_track):
        """Explicit tracks are dropped unless allowed."""
        database.add_tracks([make_track("clean"), make_track("explicit", explicit=True)])
        assert _ids(database.get_candidate_tracks()) == ["clean"]
        assert _ids(database.get_candidate_tracks(exclude_explicit=False)) == ["clean", "explicit"]

    def test_min_rating(self, database, make_track):
        """Rating floor applies only when positive."""
        database.add_tracks([make_track("low", rating=2), make_track("high", rating=4)])
        assert _ids(database.get_candidate_tracks(min_rating=3)) == ["high"]
        assert _ids(database.get_candidate_tracks(min_rating=0)) == ["high", "low"]

    def test_duration_window_inclusive(self, database, make_track):
        """Default window is [120s, 600s], bounds included."""
        database.add_tracks(
            [
                make_track("short", duration=119),
                make_track("min", duration=120),
                make_track("max", duration=600),
                make_track("long", duration=601),
            ]
        )
        assert _ids(database.get_candidate_tracks()) == ["max", "min"]

    def test_custom_duration_window(self, tmp_path, make_track):
        """The store's configured window replaces the default."""
        with Database(str(tmp_path / "window.sqlite"), min_duration=60, max_duration=300) as db:
            db.add_tracks(
                [
                    make_track("edit", duration=90),
                    make_track("radio", duration=200),
                    make_track("extended", duration=420),
                ]
            )
            assert _ids(db.get_candidate_tracks()) == ["edit", "radio"]

    def test_inverted_window_rejected(self, tmp_path):
        """min_duration above max_duration is refused."""
        with pytest.raises(ValueError, match="min_duration"):
            Database(str(tmp_path / "bad.sqlite"), min_duration=600, max_duration=120)

    def test_requires_tempo_and_key(self, database, make_track):
        """Tracks without BPM or key are excluded."""
        database.add_tracks(
            [
                make_track("ok"),
                make_track("no-bpm", bpm=0.0),
                make_track("no-key", key=None),
            ]
        )
        assert _ids(database.get_candidate_tracks()) == ["ok"]

    def test_quality_ordering(self, database, make_track):
        """Candidates come best first by rating*2 + play_count*0.1."""
        database.add_tracks(
            [
                make_track("mid", rating=3),
                make_track("top", rating=5),
                make_track("played", rating=3, play_count=20),
                make_track("bottom", rating=0),
            ]
        )
        ordered = [t.track_id for t in database.get_candidate_tracks()]
        assert ordered == ["top", "played", "mid", "bottom"]

    def test_ties_shuffled_reproducibly(self, database, make_track):
        """Equal-quality ties follow the seeded shuffle."""
        database.add_tracks([make_track(f"t{i}", rating=3) for i in range(8)] + [make_track("best", rating=5)])

        first = [t.track_id for t in database.get_candidate_tracks(rng=random.Random(9))]
        second = [t.track_id for t in database.get_candidate_tracks(rng=random.Random(9))]

        assert first == second
        assert first[0] == "best"
        assert sorted(first[1:]) == sorted(f"t{i}" for i in range(8))

    def test_ties_in_id_order_without_shuffle(self, tmp_path, make_track):
        """With shuffling off, ties stay in track ID order."""
        with Database(str(tmp_path / "ordered.sqlite"), shuffle_ties=False) as db:
            db.add_tracks([make_track(f"t{i}", rating=3) for i in (3, 1, 2)] + [make_track("best", rating=5)])
            ordered = [t.track_id for t in db.get_candidate_tracks(rng=random.Random(9))]

        assert ordered == ["best", "t1", "t2", "t3"]


class TestHistoryAndStats:
    """Test playlist history and statistics."""

    def test_record_playlist(self, database, make_track):
        """Recorded playlists read back in order."""
        database.add_tracks([make_track("a"), make_track("b"), make_track("c")])
        database.record_playlist("set-1", ["c", "a", "b"])
        assert database.get_playlist("set-1") == ["c", "a", "b"]
        assert database.get_playlist("missing") == []

    def test_stats(self, database, make_track):
        """Stats count tracks, mixable tracks, BPM range, and playlists."""
        database.add_tracks(
            [
                make_track("a", bpm=120.0),
                make_track("b", bpm=130.0),
                make_track("c", key=None, bpm=125.0),
            ]
        )
        database.record_playlist("set-1", ["a", "b"])

        stats = database.get_stats()

        assert stats["total_tracks"] == 3
        assert stats["mixable_tracks"] == 2
        assert stats["bpm_stats"]["min_bpm"] == 120.0
        assert stats["bpm_stats"]["max_bpm"] == 130.0
        assert stats["playlists"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
