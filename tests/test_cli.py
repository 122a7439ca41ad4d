"""Tests for the playmusic command line interface."""

import io
import json

import pytest
from click.testing import CliRunner

from playmusic import MemoryEngine, PlaybackStatus
from playmusic.cli import StatusPrinter, cli, describe, handle_line, run_session


@pytest.fixture
def runner():
    return CliRunner()


class TestTracksCommand:
    """Tests for `playmusic tracks`."""

    def test_lists_bundled_playlist(self, runner):
        result = runner.invoke(cli, ["tracks"])
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert len(lines) == 6
        assert "Barulho do Foguete - Zé Neto e Cristiano" in lines[0]

    def test_lists_custom_playlist(self, runner, tmp_path):
        path = tmp_path / "mine.json"
        path.write_text(json.dumps([{"title": "Solo", "subtitle": "Me", "audioSrc": "solo.mp3"}]))
        result = runner.invoke(cli, ["tracks", "--playlist", str(path)])
        assert result.exit_code == 0
        assert "Solo - Me" in result.output

    def test_invalid_playlist_is_reported(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("[]")
        result = runner.invoke(cli, ["tracks", "--playlist", str(path)])
        assert result.exit_code != 0
        assert "at least one track" in result.output


class TestPlayCommand:
    """Tests for `playmusic play --dry-run`."""

    def test_dry_run_session(self, runner):
        result = runner.invoke(cli, ["play", "--dry-run"], input="n\nv 0.5\ni\nq\n")
        assert result.exit_code == 0, result.output
        assert "[playing] 1/6 Barulho do Foguete" in result.output
        assert "[playing] 2/6 Oi Balde" in result.output
        assert "vol 50%" in result.output

    def test_dry_run_start_index(self, runner):
        result = runner.invoke(cli, ["play", "--dry-run", "--index", "5"], input="n\nq\n")
        assert result.exit_code == 0, result.output
        assert "[playing] 6/6" in result.output
        assert "[playing] 1/6" in result.output

    def test_volume_out_of_range_rejected(self, runner):
        result = runner.invoke(cli, ["play", "--dry-run", "--volume", "3"])
        assert result.exit_code != 0


class TestSession:
    """Tests for the interactive session helpers."""

    @pytest.mark.asyncio
    async def test_run_session_commands(self, playlist):
        output = []
        stream = io.StringIO("b\ns 30\nv 2\np\n")
        state = await run_session(playlist, MemoryEngine(auto=True, duration=200.0),
                                  stream=stream, echo=output.append)
        assert state.current_index == 5
        assert state.current_time == 30.0
        assert state.volume == 1.0
        assert state.status is PlaybackStatus.PAUSED

    @pytest.mark.asyncio
    async def test_handle_line_rejects_bad_numbers(self, auto_controller):
        output = []
        assert await handle_line(auto_controller, "s abc", output.append) is True
        assert output == ["'s' needs a number"]

    @pytest.mark.asyncio
    async def test_handle_line_quit(self, auto_controller):
        assert await handle_line(auto_controller, "q") is False

    @pytest.mark.asyncio
    async def test_handle_line_unknown(self, auto_controller):
        output = []
        await handle_line(auto_controller, "zz", output.append)
        assert "Unknown command" in output[0]

    def test_status_printer_skips_time_updates(self, controller, playlist):
        output = []
        printer = StatusPrinter(playlist, output.append)
        printer(controller.state)
        printer(controller.state.__class__(current_time=5.0))
        assert len(output) == 1

    def test_describe_includes_error(self, playlist):
        from playmusic import ErrorKind, PlaybackState
        state = PlaybackState(status=PlaybackStatus.ERROR, error=ErrorKind.LOAD_FAILURE,
                              error_message="gone")
        assert describe(state, playlist).endswith("(load_failure: gone)")
