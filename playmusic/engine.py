"""
Media engine contract and an in-process implementation.

The controller talks to audio output only through the MediaEngine
protocol. The default implementation drives mpv (see playmusic.mpv);
MemoryEngine is a scriptable stand-in whose asynchronous operations
settle when the caller says so, which is what tests and dry runs need.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from .errors import LoadFailure, PlaybackBlocked

logger = logging.getLogger("playmusic")


@dataclass(frozen=True)
class Metadata:
    """Result of a successful load."""
    duration: float | None = None


# Engine events

@dataclass(frozen=True)
class LoadedMetadata:
    duration: float


@dataclass(frozen=True)
class TimeUpdate:
    time: float


@dataclass(frozen=True)
class PlayStateChanged:
    is_playing: bool


@dataclass(frozen=True)
class Ended:
    pass


@dataclass(frozen=True)
class EngineFailure:
    kind: str
    message: str = ""


EngineEvent = LoadedMetadata | TimeUpdate | PlayStateChanged | Ended | EngineFailure
EngineListener = Callable[[EngineEvent], None]


class MediaEngine(Protocol):
    """Protocol for the single playable resource the controller drives.

    load() and play() may take observable time and are coroutines; the
    remaining commands are synchronous. Engines must tolerate a new
    load() while a previous one is still pending.
    """

    @property
    def available(self) -> bool:
        """True if the engine can accept commands."""
        ...

    async def load(self, uri: str) -> Metadata:
        """Load a resource, raising LoadFailure if it cannot be used."""
        ...

    async def play(self) -> None:
        """Start playback, raising PlaybackBlocked if the engine refuses."""
        ...

    def pause(self) -> None:
        ...

    def seek_to(self, time: float) -> None:
        ...

    def set_volume(self, volume: float) -> None:
        ...

    def subscribe(self, listener: EngineListener) -> None:
        ...

    def unsubscribe(self, listener: EngineListener) -> None:
        ...


class EventEmitter:
    """Listener bookkeeping shared by engine implementations."""

    def __init__(self):
        self._listeners: list[EngineListener] = []

    def subscribe(self, listener: EngineListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EngineListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event: EngineEvent) -> None:
        """Deliver an event to every current listener."""
        # Copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            listener(event)


class MemoryEngine(EventEmitter):
    """In-process engine with caller-controlled completions.

    In manual mode (the default) every load() and play() parks on a
    future that stays pending until resolve_load/fail_load or
    resolve_play/block_play settles it, so tests can interleave
    completions from successive track switches in any order. In auto
    mode the operations settle immediately.

    Every command is recorded in ``commands`` as a tuple such as
    ("load", uri) or ("seek_to", 50.0).
    """

    def __init__(
        self,
        auto: bool = False,
        duration: float | None = 180.0,
        available: bool = True,
    ):
        super().__init__()
        self.auto = auto
        self.duration = duration
        self.is_available = available
        self.block_autoplay = False
        self.failing_uris: set[str] = set()

        self.commands: list[tuple] = []
        self.pending_loads: list[tuple[str, asyncio.Future]] = []
        self.pending_plays: list[asyncio.Future] = []

        self.uri: str | None = None
        self.position = 0.0
        self.volume = 1.0
        self.playing = False

    @property
    def available(self) -> bool:
        return self.is_available

    async def load(self, uri: str) -> Metadata:
        self.commands.append(("load", uri))
        self.uri = uri
        self.position = 0.0
        self.playing = False

        if self.auto:
            if uri in self.failing_uris:
                raise LoadFailure(uri, "unsupported or missing resource")
            return Metadata(duration=self.duration)

        future = asyncio.get_running_loop().create_future()
        self.pending_loads.append((uri, future))
        return await future

    async def play(self) -> None:
        self.commands.append(("play",))

        if self.auto:
            if self.block_autoplay:
                raise PlaybackBlocked("play() rejected by autoplay policy")
            self.playing = True
            return

        future = asyncio.get_running_loop().create_future()
        self.pending_plays.append(future)
        await future
        self.playing = True

    def pause(self) -> None:
        self.commands.append(("pause",))
        self.playing = False

    def seek_to(self, time: float) -> None:
        self.commands.append(("seek_to", time))
        self.position = time

    def set_volume(self, volume: float) -> None:
        self.commands.append(("set_volume", volume))
        self.volume = volume

    # Settling pending operations

    def resolve_load(self, index: int = -1, duration: float | None = None) -> None:
        """Complete a pending load (the most recent by default)."""
        _uri, future = self.pending_loads[index]
        if not future.done():
            future.set_result(Metadata(duration=duration))

    def fail_load(
        self,
        index: int = -1,
        reason: str = "decode error",
        error: Exception | None = None,
    ) -> None:
        """Fail a pending load with LoadFailure, or with ``error`` if given."""
        uri, future = self.pending_loads[index]
        if not future.done():
            future.set_exception(error or LoadFailure(uri, reason))

    def resolve_play(self, index: int = -1) -> None:
        """Complete a pending play (the most recent by default)."""
        future = self.pending_plays[index]
        if not future.done():
            future.set_result(None)

    def block_play(
        self,
        index: int = -1,
        reason: str = "autoplay blocked",
        error: Exception | None = None,
    ) -> None:
        future = self.pending_plays[index]
        if not future.done():
            future.set_exception(error or PlaybackBlocked(reason))

    # Inspection helpers

    def count(self, name: str) -> int:
        """Number of recorded commands with the given name."""
        return sum(1 for command in self.commands if command[0] == name)

    def calls(self, name: str) -> list[tuple]:
        return [command for command in self.commands if command[0] == name]
