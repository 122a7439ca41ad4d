"""Shared fixtures for playmusic tests."""

import asyncio

import pytest

from playmusic import CommandResult, MemoryEngine, PlaybackController, Playlist, Track


class MockBackend:
    """Mock mpv backend for testing.

    Implements the MpvBackend protocol against an in-memory property
    table. ``loadfile`` makes a file "open" with ``load_duration``
    unless ``load_succeeds`` is False, in which case mpv stays idle.
    Commands are tracked for verification.
    """

    def __init__(self):
        self._connected = True
        self._properties: dict = {
            "pid": 12345,
            "pause": True,
            "volume": 100.0,
            "idle-active": True,
            "eof-reached": False,
        }
        self._commands: list = []
        self._command_results: dict = {}
        self.load_duration: float | None = 180.0
        self.load_succeeds = True

    def send_command(self, command: list) -> CommandResult:
        """Record command and return appropriate result."""
        self._commands.append(command)

        cmd_key = tuple(command)
        if cmd_key in self._command_results:
            return self._command_results[cmd_key]

        name = command[0]
        if name == "get_property" and len(command) >= 2:
            prop_name = command[1]
            if self._properties.get(prop_name) is not None:
                return CommandResult(success=True, data=self._properties[prop_name])
            return CommandResult(success=False, error="property unavailable")

        if name == "set_property" and len(command) >= 3:
            self._properties[command[1]] = command[2]
            return CommandResult(success=True)

        if name == "loadfile":
            if self.load_succeeds:
                self._properties.update({
                    "path": command[1],
                    "idle-active": False,
                    "duration": self.load_duration,
                    "time-pos": 0.0,
                    "eof-reached": False,
                })
            return CommandResult(success=True)

        if name == "quit":
            self._connected = False
            return CommandResult(success=True)

        return CommandResult(success=True)

    def is_connected(self) -> bool:
        return self._connected

    # Test helper methods

    def set_property(self, name: str, value) -> None:
        self._properties[name] = value

    def get(self, name: str):
        return self._properties.get(name)

    def set_connected(self, connected: bool) -> None:
        self._connected = connected

    def set_command_result(self, command: list, result: CommandResult) -> None:
        self._command_results[tuple(command)] = result

    def get_commands(self) -> list:
        return self._commands.copy()

    def clear_commands(self) -> None:
        self._commands.clear()


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Coroutine function that lets pending callbacks and woken tasks run."""
    return _settle


@pytest.fixture
def playlist():
    """The bundled six-track playlist."""
    return Playlist.default()


@pytest.fixture
def small_playlist():
    """A three-track playlist with predictable URIs."""
    return Playlist(
        Track(title=f"Song {n}", subtitle="Artist", audio_src=f"/audio/{n}.mp3",
              cover_src=f"/covers/{n}.png")
        for n in range(3)
    )


@pytest.fixture
def engine():
    """Engine whose load/play stay pending until settled by the test."""
    return MemoryEngine(duration=200.0)


@pytest.fixture
def auto_engine():
    """Engine whose load/play settle immediately."""
    return MemoryEngine(auto=True, duration=200.0)


@pytest.fixture
def controller(playlist, engine):
    return PlaybackController(playlist, engine, volume=1.0)


@pytest.fixture
def auto_controller(playlist, auto_engine):
    return PlaybackController(playlist, auto_engine, volume=1.0)


@pytest.fixture
def states(controller):
    """States published by ``controller``, in order."""
    published = []
    controller.subscribe(published.append)
    return published


@pytest.fixture
def mock_backend():
    return MockBackend()
