"""
Data models for playmusic.

These dataclasses provide clean, typed interfaces for playlist entries,
playback state snapshots and mpv command results, enabling type-safe
operations throughout the package.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class PlaybackStatus(Enum):
    """Playback state machine states."""
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


class ErrorKind(Enum):
    """Kinds of failure surfaced in playback state."""
    LOAD_FAILURE = "load_failure"          # resource could not be fetched/decoded
    PLAYBACK_BLOCKED = "playback_blocked"  # engine refused to start playback
    ENGINE = "engine"                      # engine reported an error mid-playback


@dataclass(frozen=True)
class Track:
    """Playlist entry.

    Attributes:
        title: Track title.
        subtitle: Artist name(s).
        audio_src: URI of the audio resource.
        cover_src: URI of the cover image.
    """

    title: str
    subtitle: str
    audio_src: str
    cover_src: str

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        """Build a Track from a mapping.

        Accepts snake_case keys as well as the camelCase keys
        (audioSrc, coverSrc) used by web playlist data.
        """
        return cls(
            title=str(data["title"]),
            subtitle=str(data.get("subtitle", "")),
            audio_src=str(data.get("audio_src") or data["audioSrc"]),
            cover_src=str(data.get("cover_src") or data.get("coverSrc", "")),
        )


@dataclass
class CommandResult:
    """Result from an mpv command.

    Encapsulates the outcome of any mpv IPC command, providing
    a consistent interface for success/failure handling.

    Attributes:
        success: Whether the command executed successfully.
        data: Any data returned by the command (varies by command type).
        error: Error message if the command failed, None otherwise.
    """

    success: bool
    data: Any = None
    error: str | None = None


def format_time(seconds: float | None) -> str:
    """Format seconds as M:SS or H:MM:SS.

    Unknown, negative or NaN values render as 0:00.
    """
    if seconds is None or math.isnan(seconds) or seconds < 0:
        return "0:00"

    total_seconds = int(seconds)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@dataclass(frozen=True)
class PlaybackState:
    """Snapshot of playback state.

    Instances are immutable; the controller publishes a new snapshot on
    every change.

    Attributes:
        current_index: Index of the current track in the playlist.
        status: Current state machine state.
        current_time: Displayed position in seconds.
        duration: Track duration in seconds, or None until metadata loads.
        volume: Volume level (0.0-1.0).
        seek_preview_time: Position being dragged to, or None.
        load_generation: Counter bumped on every track load.
        error: Kind of the last failure, or None.
        error_message: Human-readable failure detail, or None.
    """

    current_index: int = 0
    status: PlaybackStatus = PlaybackStatus.IDLE
    current_time: float = 0.0
    duration: float | None = None
    volume: float = 1.0
    seek_preview_time: float | None = None
    load_generation: int = 0
    error: ErrorKind | None = None
    error_message: str | None = None

    @property
    def is_playing(self) -> bool:
        return self.status is PlaybackStatus.PLAYING

    @property
    def is_seeking(self) -> bool:
        return self.seek_preview_time is not None

    @property
    def progress_percent(self) -> float:
        """Get playback progress as a percentage (0-100)."""
        if not self.duration or self.duration <= 0:
            return 0.0
        return min(100.0, (self.current_time / self.duration) * 100)

    @property
    def remaining(self) -> float:
        """Get remaining time in seconds (0 while duration is unknown)."""
        if self.duration is None:
            return 0.0
        return max(0.0, self.duration - self.current_time)

    @property
    def volume_level(self) -> str:
        """Coarse volume bucket for picking an indicator: mute, low or high."""
        if self.volume <= 0:
            return "mute"
        if self.volume <= 0.5:
            return "low"
        return "high"

    def format_position(self) -> str:
        return format_time(self.current_time)

    def format_duration(self) -> str:
        return format_time(self.duration)

    def format_remaining(self) -> str:
        return format_time(self.remaining)
