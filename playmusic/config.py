"""Configuration for playmusic, read from PLAYMUSIC_* environment variables."""

import logging
import os
from pathlib import Path

logger = logging.getLogger("playmusic")


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean environment variable (true/1/yes/on)."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def env_float(name: str, default: float) -> float:
    """Parse a float environment variable, falling back on bad values."""
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default


def clamp_volume(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


DEBUG = env_bool("PLAYMUSIC_DEBUG")

# Initial volume for new controllers (0.0-1.0)
DEFAULT_VOLUME = clamp_volume(env_float("PLAYMUSIC_VOLUME", 1.0))

# Playlist file; the bundled playlist is used when unset
PLAYLIST_PATH = os.environ.get("PLAYMUSIC_PLAYLIST") or None

# Root directory for relative audio URIs such as /assets/audio/track.mp3
MEDIA_ROOT = Path(os.environ.get("PLAYMUSIC_MEDIA_ROOT") or os.getcwd())

# mpv engine
MPV_PATH = os.environ.get("PLAYMUSIC_MPV_PATH", "mpv")
MPV_SOCKET_PATH = os.environ.get("PLAYMUSIC_MPV_SOCKET", "/tmp/playmusic-mpv.sock")
POLL_INTERVAL = env_float("PLAYMUSIC_POLL_INTERVAL", 0.25)
STARTUP_TIMEOUT = env_float("PLAYMUSIC_STARTUP_TIMEOUT", 5.0)
