"""
Playback controller for a fixed playlist.

This module provides the PlaybackController class which owns playback
state, issues commands to a MediaEngine, consumes its events and
publishes state snapshots to subscribers.

Track switches are asynchronous (load, then optionally play) and a user
can start a second switch before the first settles. Every load bumps
``load_generation``; each asynchronous completion and each engine event
carries the generation that was current when it was issued, and is
dropped if that generation is no longer current.

Example usage:
    >>> controller = PlaybackController(Playlist.default(), engine)
    >>> controller.subscribe(lambda state: print(state.status))
    >>> await controller.load_track(0, auto_play=True)
    >>> controller.seek_preview(42.0)   # while dragging
    >>> controller.seek_commit(42.0)    # on release
    >>> await controller.next()
"""

import asyncio
import functools
import logging
import math
from dataclasses import replace
from typing import Callable, Coroutine

from . import config
from .engine import (
    EngineEvent,
    EngineFailure,
    Ended,
    LoadedMetadata,
    MediaEngine,
    PlayStateChanged,
    TimeUpdate,
)
from .errors import LoadFailure, PlaybackBlocked
from .models import ErrorKind, PlaybackState, PlaybackStatus, Track
from .playlist import Playlist

logger = logging.getLogger("playmusic")

StateListener = Callable[[PlaybackState], None]

_ENGINE_ERROR_KINDS = {kind.value: kind for kind in ErrorKind}


class PlaybackController:
    """Single-track playback state machine.

    States: IDLE -> LOADING -> (PLAYING | PAUSED) -> ENDED -> LOADING, with
    ERROR reachable on engine failure. Command methods never raise;
    failures are reported through ``state.status`` and ``state.error``.

    load_track, play, toggle_play_pause, next and prev are coroutines that
    suspend only while the engine loads or starts playback. All other
    commands are synchronous.

    The engine is injected so that tests can drive completions by hand.
    """

    def __init__(
        self,
        playlist: Playlist,
        engine: MediaEngine,
        volume: float | None = None,
    ):
        """Initialize the controller.

        Args:
            playlist: Tracks to play, fixed for the controller's lifetime.
            engine: Media engine that owns the audio resource.
            volume: Initial volume (0.0-1.0). Defaults to config.DEFAULT_VOLUME.
        """
        self.playlist = playlist
        self._engine = engine
        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._engine_listener = None

        # Load bookkeeping for the current generation
        self._loading = False
        self._autoplay = False
        self._pending_seek: float | None = None
        # Bumped by pause/play so an in-flight play() result can be superseded
        self._play_intent = 0

        initial = config.DEFAULT_VOLUME if volume is None else volume
        self._state = PlaybackState(volume=config.clamp_volume(initial))

        if self._engine.available:
            self._engine.set_volume(self._state.volume)
        self._resubscribe(self._state.load_generation)

    # State publication

    @property
    def state(self) -> PlaybackState:
        """Current playback state snapshot."""
        return self._state

    @property
    def engine(self) -> MediaEngine:
        return self._engine

    @property
    def current_track(self) -> Track:
        return self.playlist[self._state.current_index]

    def subscribe(self, listener: StateListener) -> None:
        """Register a listener called with the new state after every change."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _update(self, **changes) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("State listener failed")

    def _is_current(self, generation: int) -> bool:
        return generation == self._state.load_generation

    def _resubscribe(self, generation: int) -> None:
        """Swap the engine subscription for one bound to ``generation``."""
        if self._engine_listener is not None:
            self._engine.unsubscribe(self._engine_listener)
        self._engine_listener = functools.partial(self.on_engine_event, generation)
        self._engine.subscribe(self._engine_listener)

    # Track loading and navigation

    async def load_track(self, index: int, auto_play: bool = False) -> None:
        """Load a track, optionally starting playback once it is ready.

        Args:
            index: Playlist index; any integer, taken modulo the playlist length.
            auto_play: Start playback after the load settles.
        """
        await self._load(index, auto_play)

    async def _load(self, index: int, auto_play: bool, keep_seek: bool = False) -> None:
        index = self.playlist.normalize(index)
        generation = self._state.load_generation + 1
        track = self.playlist[index]

        if not keep_seek:
            self._pending_seek = None
        self._autoplay = auto_play
        self._loading = True
        self._play_intent += 1
        self._update(
            current_index=index,
            status=PlaybackStatus.LOADING,
            current_time=self._pending_seek or 0.0,
            duration=None,
            seek_preview_time=None,
            load_generation=generation,
            error=None,
            error_message=None,
        )
        self._resubscribe(generation)

        if not self._engine.available:
            logger.warning(f"Media engine unavailable, cannot load track {index}")
            self._loading = False
            self._update(
                status=PlaybackStatus.ERROR,
                error=ErrorKind.LOAD_FAILURE,
                error_message="Media engine unavailable",
            )
            return

        logger.info(f"Loading track {index}: {track.title} ({track.audio_src})")
        try:
            metadata = await self._engine.load(track.audio_src)
        except LoadFailure as e:
            if not self._is_current(generation):
                logger.debug(f"Discarding stale load failure from generation {generation}")
                return
            logger.warning(f"Failed to load {track.audio_src}: {e.reason}")
            self._loading = False
            self._update(
                status=PlaybackStatus.ERROR,
                error=ErrorKind.LOAD_FAILURE,
                error_message=str(e),
            )
            return
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Discarding stale load error from generation {generation}")
                return
            logger.exception(f"Engine failed while loading {track.audio_src}")
            self._loading = False
            self._update(
                status=PlaybackStatus.ERROR,
                error=ErrorKind.ENGINE,
                error_message=str(e) or type(e).__name__,
            )
            return

        if not self._is_current(generation):
            logger.debug(f"Discarding stale load completion from generation {generation}")
            return

        self._loading = False
        if metadata is not None and metadata.duration is not None:
            self._apply_duration(metadata.duration)

        if self._autoplay:
            await self._start_playback(generation)
        else:
            self._update(status=PlaybackStatus.PAUSED)

    async def next(self) -> None:
        """Advance to the next track (wrapping) and attempt to play it."""
        await self.load_track(
            self.playlist.next_index(self._state.current_index), auto_play=True
        )

    async def prev(self) -> None:
        """Go back to the previous track (wrapping) and attempt to play it."""
        await self.load_track(
            self.playlist.prev_index(self._state.current_index), auto_play=True
        )

    # Playback control

    def _has_resource(self) -> bool:
        if self._state.status is PlaybackStatus.IDLE:
            return False
        return not (
            self._state.status is PlaybackStatus.ERROR
            and self._state.error is ErrorKind.LOAD_FAILURE
        )

    async def play(self) -> None:
        """Start or resume playback.

        From IDLE, or after a failed load, this loads the current track
        with autoplay. While a load is in flight it only requests
        playback once the load settles.
        """
        if not self._engine.available:
            return

        if not self._has_resource():
            # Same track, so a seek committed before the load still applies
            await self._load(self._state.current_index, True, keep_seek=True)
            return

        if self._loading:
            self._autoplay = True
            self._update(status=PlaybackStatus.LOADING)
            return

        await self._start_playback(self._state.load_generation)

    async def _start_playback(self, generation: int) -> None:
        self._play_intent += 1
        intent = self._play_intent
        try:
            await self._engine.play()
        except PlaybackBlocked as e:
            if not self._is_current(generation) or intent != self._play_intent:
                logger.debug(f"Discarding stale play rejection from generation {generation}")
                return
            logger.warning(f"Playback blocked: {e}")
            self._update(
                status=PlaybackStatus.PAUSED,
                error=ErrorKind.PLAYBACK_BLOCKED,
                error_message=str(e) or "Playback blocked",
            )
            return
        except Exception as e:
            if not self._is_current(generation) or intent != self._play_intent:
                logger.debug(f"Discarding stale play error from generation {generation}")
                return
            logger.exception("Engine failed to start playback")
            self._update(
                status=PlaybackStatus.ERROR,
                error=ErrorKind.ENGINE,
                error_message=str(e) or type(e).__name__,
            )
            return

        if not self._is_current(generation) or intent != self._play_intent:
            logger.debug(f"Discarding stale play completion from generation {generation}")
            return
        self._update(status=PlaybackStatus.PLAYING, error=None, error_message=None)

    def pause(self) -> None:
        """Pause playback immediately.

        While a load is in flight there is nothing to pause yet; the load
        just settles as PAUSED instead of starting playback.
        """
        if not self._engine.available or not self._has_resource():
            return

        self._play_intent += 1
        if self._loading:
            self._autoplay = False
            return

        self._engine.pause()
        self._update(status=PlaybackStatus.PAUSED)

    async def toggle_play_pause(self) -> None:
        """Pause when playing, otherwise play. No-op without an engine."""
        if not self._engine.available:
            return
        if self._state.status is PlaybackStatus.PLAYING:
            self.pause()
        else:
            await self.play()

    # Seeking

    def seek_preview(self, time: float) -> None:
        """Show a drag position without moving the engine."""
        time = max(0.0, float(time))
        if self._state.duration is not None:
            time = min(time, self._state.duration)
        self._update(seek_preview_time=time, current_time=time)

    def seek_commit(self, time: float) -> None:
        """Move the engine position once, at the end of a drag.

        While the duration is still unknown the seek is held back and
        applied when metadata for the current track arrives.
        """
        time = max(0.0, float(time))
        if self._state.duration is None:
            logger.debug(f"Duration unknown, deferring seek to {time:.2f}s")
            self._pending_seek = time
            self._update(seek_preview_time=None, current_time=time)
            return
        self._commit_seek(time)

    def _commit_seek(self, time: float) -> None:
        duration = self._state.duration
        target = min(time, duration) if duration is not None else time
        if target != time:
            logger.debug(
                f"SeekOutOfRange: requested {time:.2f}s, clamped to {target:.2f}s"
            )
        if self._engine.available:
            self._engine.seek_to(target)
        self._update(seek_preview_time=None, current_time=target)

    def _apply_duration(self, duration: float) -> None:
        duration = max(0.0, float(duration))
        changes = {
            "duration": duration,
            "current_time": min(self._state.current_time, duration),
        }
        if self._state.seek_preview_time is not None:
            changes["seek_preview_time"] = min(self._state.seek_preview_time, duration)
        self._update(**changes)

        if self._pending_seek is not None:
            target, self._pending_seek = self._pending_seek, None
            self._commit_seek(target)

    # Volume

    def set_volume(self, volume: float) -> float:
        """Set the volume, clamped to 0.0-1.0.

        Returns:
            The volume actually applied. NaN leaves the volume unchanged.
        """
        volume = float(volume)
        if math.isnan(volume):
            return self._state.volume
        volume = config.clamp_volume(volume)
        if self._engine.available:
            self._engine.set_volume(volume)
        self._update(volume=volume)
        return volume

    # Engine events

    def on_engine_event(self, generation: int, event: EngineEvent) -> None:
        """Apply an engine event delivered for ``generation``."""
        if not self._is_current(generation):
            logger.debug(
                f"Discarding stale {type(event).__name__} from generation {generation}"
            )
            return

        if isinstance(event, LoadedMetadata):
            self._apply_duration(event.duration)

        elif isinstance(event, TimeUpdate):
            if self._state.seek_preview_time is not None:
                return
            time = max(0.0, event.time)
            if self._state.duration is not None:
                time = min(time, self._state.duration)
            self._update(current_time=time)

        elif isinstance(event, PlayStateChanged):
            # The pending load decides the post-load state
            if self._loading:
                return
            if event.is_playing:
                self._update(status=PlaybackStatus.PLAYING, error=None, error_message=None)
            else:
                self._update(status=PlaybackStatus.PAUSED)

        elif isinstance(event, Ended):
            logger.info(f"Track {self._state.current_index} ended, advancing")
            self._update(status=PlaybackStatus.ENDED)
            self._spawn(self.next())

        elif isinstance(event, EngineFailure):
            kind = _ENGINE_ERROR_KINDS.get(event.kind, ErrorKind.ENGINE)
            logger.warning(f"Engine error ({event.kind}): {event.message}")
            self._loading = False
            self._update(
                status=PlaybackStatus.ERROR,
                error=kind,
                error_message=event.message or event.kind,
            )

    # Task management

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_pending(self) -> None:
        """Wait for controller-spawned work such as auto-advance to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Detach from the engine and cancel spawned work."""
        if self._engine_listener is not None:
            self._engine.unsubscribe(self._engine_listener)
            self._engine_listener = None
        for task in list(self._tasks):
            task.cancel()
