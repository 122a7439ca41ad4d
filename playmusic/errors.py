"""Exceptions raised by media engines and playlist loading.

The controller never lets these escape its command methods; it records
them in PlaybackState instead.
"""


class PlaybackError(Exception):
    """Base class for playback failures."""


class LoadFailure(PlaybackError):
    """Raised when a media resource cannot be fetched or decoded."""

    def __init__(self, uri: str, reason: str = "load failed"):
        self.uri = uri
        self.reason = reason
        super().__init__(f"{reason}: {uri}")


class PlaybackBlocked(PlaybackError):
    """Raised when the engine refuses to start playback (e.g. autoplay policy)."""


class PlaylistError(ValueError):
    """Raised when a playlist is empty or cannot be parsed."""
