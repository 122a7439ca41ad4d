"""Tests for playmusic data models."""

import math

import pytest

from playmusic import CommandResult, ErrorKind, PlaybackState, PlaybackStatus, format_time


class TestCommandResult:
    """Tests for CommandResult dataclass."""

    def test_success_result(self):
        result = CommandResult(success=True, data=42)
        assert result.success is True
        assert result.data == 42
        assert result.error is None

    def test_error_result(self):
        result = CommandResult(success=False, error="Connection refused")
        assert result.success is False
        assert result.data is None


class TestFormatTime:
    """Tests for time formatting."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0:00"),
        (5, "0:05"),
        (65.9, "1:05"),
        (600, "10:00"),
        (3661, "1:01:01"),
        (None, "0:00"),
        (-3, "0:00"),
        (math.nan, "0:00"),
    ])
    def test_format(self, seconds, expected):
        assert format_time(seconds) == expected


class TestPlaybackState:
    """Tests for the PlaybackState snapshot."""

    def test_defaults(self):
        state = PlaybackState()
        assert state.current_index == 0
        assert state.status is PlaybackStatus.IDLE
        assert state.duration is None
        assert state.is_playing is False
        assert state.is_seeking is False

    def test_is_frozen(self):
        state = PlaybackState()
        with pytest.raises(AttributeError):
            state.volume = 0.5

    def test_progress(self):
        state = PlaybackState(current_time=45.0, duration=180.0)
        assert state.progress_percent == 25.0
        assert state.remaining == 135.0
        assert state.format_position() == "0:45"
        assert state.format_duration() == "3:00"
        assert state.format_remaining() == "2:15"

    def test_progress_without_duration(self):
        state = PlaybackState(current_time=45.0)
        assert state.progress_percent == 0.0
        assert state.remaining == 0.0
        assert state.format_duration() == "0:00"

    @pytest.mark.parametrize("volume,level", [(0.0, "mute"), (0.3, "low"), (0.5, "low"), (0.51, "high"), (1.0, "high")])
    def test_volume_level(self, volume, level):
        assert PlaybackState(volume=volume).volume_level == level

    def test_error_fields(self):
        state = PlaybackState(status=PlaybackStatus.ERROR, error=ErrorKind.LOAD_FAILURE, error_message="404")
        assert state.error is ErrorKind.LOAD_FAILURE
        assert state.is_playing is False
