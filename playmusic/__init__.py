"""
playmusic - playlist playback controller.

This package drives a media engine through a fixed, circular playlist,
keeping playback state consistent while user commands race with
asynchronous engine completions.

Example usage:
    >>> import asyncio
    >>> from playmusic import MemoryEngine, PlaybackController, Playlist
    >>> controller = PlaybackController(Playlist.default(), MemoryEngine(auto=True))
    >>> asyncio.run(controller.load_track(5, auto_play=True))
    >>> asyncio.run(controller.next())
    >>> controller.state.current_index
    0
"""

__version__ = "0.1.0"

from .controller import PlaybackController
from .engine import (
    EngineFailure,
    Ended,
    LoadedMetadata,
    MediaEngine,
    MemoryEngine,
    Metadata,
    PlayStateChanged,
    TimeUpdate,
)
from .errors import LoadFailure, PlaybackBlocked, PlaybackError, PlaylistError
from .models import (
    CommandResult,
    ErrorKind,
    PlaybackState,
    PlaybackStatus,
    Track,
    format_time,
)
from .mpv import MpvBackend, MpvEngine, SocketBackend
from .playlist import Playlist

__all__ = [
    "__version__",
    # Core playback
    "PlaybackController",
    "PlaybackState",
    "PlaybackStatus",
    "ErrorKind",
    "Playlist",
    "Track",
    "format_time",
    # Engines
    "MediaEngine",
    "MemoryEngine",
    "MpvEngine",
    "MpvBackend",
    "SocketBackend",
    "CommandResult",
    "Metadata",
    # Engine events
    "LoadedMetadata",
    "TimeUpdate",
    "PlayStateChanged",
    "Ended",
    "EngineFailure",
    # Errors
    "PlaybackError",
    "LoadFailure",
    "PlaybackBlocked",
    "PlaylistError",
]
