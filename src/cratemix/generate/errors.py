"""
Playlist generation errors.

All of these surface to the caller as a failed generation carrying a
human-readable message. None are retried internally.
"""


class PlaylistGenerationError(Exception):
    """Raised when playlist generation fails."""
    pass


class EmptyCandidatePoolError(PlaylistGenerationError):
    """Raised when no tracks match the candidate filters."""
    pass


class NoStartingTrackError(PlaylistGenerationError):
    """Raised when no track qualifies as the opening track."""
    pass


class InvalidOptionsError(PlaylistGenerationError):
    """Raised when generation options are malformed or out of range."""
    pass
