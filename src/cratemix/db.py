"""
SQLite Track Store for cratemix.

Manages track metadata, play counts, and generated playlist history.

- Schema: tracks (duration, BPM, Camelot key, energy, rating, intro/outro hints)
- History: playlist_history (playlist_id, track_id, position) for generated sets
- Candidate query: the read-only pool handed to the playlist generator
"""

import random
import sqlite3
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any, Iterable
from dataclasses import dataclass, asdict
from datetime import datetime, timezone

from .generate.keys import to_camelot

logger = logging.getLogger(__name__)

# Default candidate window; tracks outside it are hard to mix
MIN_CANDIDATE_DURATION = 120
MAX_CANDIDATE_DURATION = 600


@dataclass(frozen=True)
class Track:
    """Immutable track record, owned by the store."""

    track_id: str
    duration: float
    bpm: float
    key: Optional[str]  # Camelot notation (1A-12B)
    energy_level: int = 5
    title: Optional[str] = None
    artist: Optional[str] = None
    genre: Optional[str] = None
    rating: float = 0
    play_count: int = 0
    explicit: bool = False
    intro_time: Optional[float] = None
    outro_time: Optional[float] = None
    file_path: Optional[str] = None

    @property
    def quality(self) -> float:
        """Quality heuristic used for ordering and opening-track choice."""
        return (self.rating or 0) * 2 + (self.play_count or 0) * 0.1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return asdict(self)


class Database:
    """SQLite track store."""

    SCHEMA_VERSION = 1

    SCHEMA = """
    -- Tracks table: library metadata + analysis results
    CREATE TABLE IF NOT EXISTS tracks (
        id TEXT PRIMARY KEY,
        file_path TEXT UNIQUE,
        title TEXT,
        artist TEXT,
        genre TEXT,
        duration REAL NOT NULL,
        bpm REAL,
        key_signature TEXT,
        energy_level INTEGER NOT NULL DEFAULT 5,
        rating REAL NOT NULL DEFAULT 0,
        play_count INTEGER NOT NULL DEFAULT 0,
        explicit_content INTEGER NOT NULL DEFAULT 0,
        intro_time REAL,
        outro_time REAL,
        updated_at TEXT NOT NULL
    );

    -- Generated playlists, one row per entry
    CREATE TABLE IF NOT EXISTS playlist_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        playlist_id TEXT NOT NULL,
        track_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (track_id) REFERENCES tracks(id) ON DELETE CASCADE
    );

    -- Schema version tracking
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        updated_at TEXT NOT NULL
    );

    -- Indices for common queries
    CREATE INDEX IF NOT EXISTS idx_tracks_key ON tracks(key_signature);
    CREATE INDEX IF NOT EXISTS idx_tracks_genre ON tracks(genre);
    CREATE INDEX IF NOT EXISTS idx_playlist_id ON playlist_history(playlist_id);
    """

    def __init__(
        self,
        db_path: str = "data/db/library.sqlite",
        min_duration: float = MIN_CANDIDATE_DURATION,
        max_duration: float = MAX_CANDIDATE_DURATION,
        shuffle_ties: bool = True,
    ):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
            min_duration: Shortest candidate track in seconds (inclusive).
            max_duration: Longest candidate track in seconds (inclusive).
            shuffle_ties: Shuffle equal-quality candidates; otherwise they
                stay in track ID order.
        """
        if min_duration > max_duration:
            raise ValueError(
                f"min_duration ({min_duration}) must not exceed max_duration ({max_duration})"
            )
        self.db_path = db_path
        self.min_duration = min_duration
        self.max_duration = max_duration
        self.shuffle_ties = shuffle_ties
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open database connection and initialize schema."""
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        logger.info(f"Connected to database: {self.db_path}")
        self._initialize_schema()

    def disconnect(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database disconnected")

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def _initialize_schema(self) -> None:
        """Initialize or migrate schema."""
        assert self.conn is not None
        cursor = self.conn.cursor()

        cursor.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if not cursor.fetchone():
            logger.info("Initializing database schema...")
            cursor.executescript(self.SCHEMA)
            cursor.execute(
                "INSERT INTO schema_version (version, updated_at) VALUES (?, ?)",
                (self.SCHEMA_VERSION, datetime.now(timezone.utc).isoformat()),
            )
            self.conn.commit()
            logger.info(f"✅ Database schema initialized (v{self.SCHEMA_VERSION})")
        else:
            cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            current_version = cursor.fetchone()[0]
            if current_version < self.SCHEMA_VERSION:
                logger.warning(
                    f"Schema version mismatch: {current_version} < {self.SCHEMA_VERSION}. "
                    f"Consider running migration."
                )

    @staticmethod
    def _row_to_track(row: sqlite3.Row) -> Track:
        return Track(
            track_id=row["id"],
            duration=row["duration"],
            bpm=row["bpm"],
            key=row["key_signature"],
            energy_level=row["energy_level"],
            title=row["title"],
            artist=row["artist"],
            genre=row["genre"],
            rating=row["rating"],
            play_count=row["play_count"],
            explicit=bool(row["explicit_content"]),
            intro_time=row["intro_time"],
            outro_time=row["outro_time"],
            file_path=row["file_path"],
        )

    def add_track(self, track: Track) -> None:
        """
        Add or update a track in the database.

        Args:
            track: Track record.
        """
        self.add_tracks([track])
        logger.debug(f"Added/updated track: {track.track_id}")

    def add_tracks(self, tracks: Iterable[Track]) -> int:
        """
        Add or update several tracks in one transaction.

        Args:
            tracks: Track records.

        Returns:
            Number of tracks written.
        """
        assert self.conn is not None
        now = datetime.now(timezone.utc).isoformat()
        rows = [
            (
                t.track_id,
                t.file_path,
                t.title,
                t.artist,
                t.genre,
                t.duration,
                t.bpm,
                self._camelot_key(t),
                t.energy_level,
                t.rating,
                t.play_count,
                int(t.explicit),
                t.intro_time,
                t.outro_time,
                now,
            )
            for t in tracks
        ]

        with self.conn:
            self.conn.executemany(
                """
                INSERT OR REPLACE INTO tracks (
                    id, file_path, title, artist, genre, duration, bpm,
                    key_signature, energy_level, rating, play_count,
                    explicit_content, intro_time, outro_time, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return len(rows)

    @staticmethod
    def _camelot_key(track: Track) -> Optional[str]:
        """Store keys in Camelot notation; unrecognized labels become NULL."""
        if track.key is None:
            return None
        camelot = to_camelot(track.key)
        if camelot is None:
            logger.warning(f"Unrecognized key {track.key!r} for track {track.track_id}; storing no key")
        return camelot

    def get_track(self, track_id: str) -> Optional[Track]:
        """
        Retrieve a track by ID.

        Args:
            track_id: Unique track identifier.

        Returns:
            Track or None if not found.
        """
        assert self.conn is not None
        cursor = self.conn.cursor()

        cursor.execute("SELECT * FROM tracks WHERE id = ?", (track_id,))
        row = cursor.fetchone()

        if not row:
            return None
        return self._row_to_track(row)

    def delete_track(self, track_id: str) -> bool:
        """
        Remove a track (and its playlist history rows).

        Returns:
            True if a track was deleted.
        """
        assert self.conn is not None
        with self.conn:
            cursor = self.conn.execute("DELETE FROM tracks WHERE id = ?", (track_id,))
        return cursor.rowcount > 0

    def list_tracks(
        self, bpm_range: Optional[tuple] = None, key: Optional[str] = None
    ) -> List[Track]:
        """
        List tracks with optional filtering.

        Args:
            bpm_range: Tuple (min_bpm, max_bpm) to filter by BPM range.
            key: Camelot key to filter by exact key.

        Returns:
            List of Track objects matching filters.
        """
        assert self.conn is not None
        cursor = self.conn.cursor()

        query = "SELECT * FROM tracks WHERE 1=1"
        params = []

        if bpm_range:
            min_bpm, max_bpm = bpm_range
            query += " AND bpm BETWEEN ? AND ?"
            params.extend([min_bpm, max_bpm])

        if key:
            query += " AND key_signature = ?"
            params.append(to_camelot(key) or key)

        query += " ORDER BY id"
        cursor.execute(query, params)
        return [self._row_to_track(row) for row in cursor.fetchall()]

    def get_candidate_tracks(
        self,
        genres: Iterable[str] = (),
        exclude_explicit: bool = True,
        min_rating: float = 0,
        rng: Optional[random.Random] = None,
    ) -> List[Track]:
        """
        Query the candidate pool for playlist generation.

        Filters: genre inclusion (none when `genres` is empty), explicit
        exclusion, minimum rating, duration within the store's candidate
        window (default [120s, 600s]), positive BPM, known key. Ordered by
        rating*2 + play_count*0.1 (descending); equal scores are shuffled
        unless the store was opened with shuffle_ties=False.

        Args:
            genres: Genres to include; empty means any genre.
            exclude_explicit: Drop tracks flagged as explicit.
            min_rating: Minimum rating (ignored when <= 0).
            rng: Random source for tie-breaking (defaults to a fresh Random).

        Returns:
            List of Track objects, best first.
        """
        assert self.conn is not None
        genres = list(genres)

        query = "SELECT * FROM tracks WHERE 1=1"
        params: List[Any] = []

        if genres:
            placeholders = ",".join("?" for _ in genres)
            query += f" AND genre IN ({placeholders})"
            params.extend(genres)

        if exclude_explicit:
            query += " AND explicit_content = 0"

        if min_rating > 0:
            query += " AND rating >= ?"
            params.append(min_rating)

        query += " AND duration BETWEEN ? AND ?"
        params.extend([self.min_duration, self.max_duration])

        query += " AND bpm > 0 AND key_signature IS NOT NULL ORDER BY id"

        cursor = self.conn.cursor()
        cursor.execute(query, params)
        tracks = [self._row_to_track(row) for row in cursor.fetchall()]

        # Shuffle, then stable sort: ties keep their random order
        if self.shuffle_ties:
            (rng or random.Random()).shuffle(tracks)
        tracks.sort(key=lambda t: t.quality, reverse=True)

        logger.debug(
            f"Candidate query returned {len(tracks)} tracks "
            f"(genres={genres or 'any'}, exclude_explicit={exclude_explicit}, "
            f"min_rating={min_rating})"
        )
        return tracks

    def record_play(self, track_id: str) -> None:
        """Increment a track's play count."""
        assert self.conn is not None
        with self.conn:
            self.conn.execute(
                "UPDATE tracks SET play_count = play_count + 1, updated_at = ? WHERE id = ?",
                (datetime.now(timezone.utc).isoformat(), track_id),
            )

    def record_playlist(self, playlist_id: str, track_ids: List[str]) -> None:
        """
        Store a generated playlist in the history table.

        Args:
            playlist_id: Generated playlist ID.
            track_ids: Track IDs in playback order.
        """
        assert self.conn is not None
        now = datetime.now(timezone.utc).isoformat()
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO playlist_history (playlist_id, track_id, position, created_at)
                VALUES (?, ?, ?, ?)
                """,
                [(playlist_id, tid, pos, now) for pos, tid in enumerate(track_ids, start=1)],
            )
        logger.debug(f"Recorded playlist {playlist_id} ({len(track_ids)} tracks)")

    def get_playlist(self, playlist_id: str) -> List[str]:
        """Return the track IDs of a stored playlist in order."""
        assert self.conn is not None
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT track_id FROM playlist_history WHERE playlist_id = ? ORDER BY position",
            (playlist_id,),
        )
        return [row["track_id"] for row in cursor.fetchall()]

    def get_stats(self) -> Dict[str, Any]:
        """
        Get database statistics.

        Returns:
            Dictionary with counts and BPM stats.
        """
        assert self.conn is not None
        cursor = self.conn.cursor()

        cursor.execute("SELECT COUNT(*) FROM tracks")
        total_tracks = cursor.fetchone()[0]

        cursor.execute("SELECT COUNT(*) FROM tracks WHERE bpm > 0 AND key_signature IS NOT NULL")
        mixable_tracks = cursor.fetchone()[0]

        cursor.execute(
            "SELECT MIN(bpm) as min_bpm, MAX(bpm) as max_bpm, AVG(bpm) as avg_bpm FROM tracks WHERE bpm > 0"
        )
        bpm_stats = dict(cursor.fetchone())

        cursor.execute("SELECT COUNT(DISTINCT playlist_id) FROM playlist_history")
        playlists = cursor.fetchone()[0]

        return {
            "total_tracks": total_tracks,
            "mixable_tracks": mixable_tracks,
            "bpm_stats": bpm_stats,
            "playlists": playlists,
        }
