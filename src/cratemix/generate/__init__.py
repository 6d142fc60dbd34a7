"""
Playlist Generation Module: Build harmonically mixed playlists.

- Camelot key compatibility matrix (computed once, read-only)
- Greedy sequencing with top-5 randomized pick (no backtracking)
- Energy curves shaping the set over its target duration
- Per-transition annotations and aggregate playlist metrics
"""

__all__ = ["errors", "keys", "energy", "options", "selector", "transitions", "playlist"]
