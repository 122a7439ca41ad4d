"""
mpv-backed media engine.

This module drives a single long-lived mpv process in idle mode through
its JSON IPC protocol over a Unix socket. The IPC transport is behind
the MpvBackend protocol so a mock backend can be injected for tests.

Blocking socket calls made from coroutines run in a worker thread;
engine events are always emitted on the event loop thread.

Protocol documentation: https://mpv.io/manual/stable/#json-ipc
"""

import asyncio
import itertools
import json
import logging
import socket
import subprocess
import time
from pathlib import Path
from typing import Any, Protocol

from . import config
from .engine import (
    Ended,
    EventEmitter,
    LoadedMetadata,
    Metadata,
    PlayStateChanged,
    TimeUpdate,
)
from .errors import LoadFailure, PlaybackBlocked
from .models import CommandResult

logger = logging.getLogger("playmusic")


class MpvBackend(Protocol):
    """Protocol for mpv communication backends."""

    def send_command(self, command: list) -> CommandResult:
        """Send a command to mpv and return the result.

        Args:
            command: Command as a list, e.g., ["set_property", "pause", True]
        """
        ...

    def is_connected(self) -> bool:
        """Check if mpv is running and accepting commands."""
        ...


class SocketBackend:
    """mpv backend using Unix socket IPC.

    Each command opens a new connection. mpv may interleave event lines
    with the reply, so replies are matched on request_id.
    """

    def __init__(self, socket_path: str, timeout: float = 5.0):
        self.socket_path = socket_path
        self.timeout = timeout
        self._request_ids = itertools.count(1)

    def send_command(self, command: list) -> CommandResult:
        request_id = next(self._request_ids)
        try:
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
                sock.settimeout(self.timeout)
                sock.connect(self.socket_path)

                msg = json.dumps({"command": command, "request_id": request_id}) + "\n"
                sock.sendall(msg.encode())

                buffer = b""
                while True:
                    chunk = sock.recv(4096)
                    if not chunk:
                        return CommandResult(success=False, error="Connection closed")
                    buffer += chunk
                    while b"\n" in buffer:
                        line, buffer = buffer.split(b"\n", 1)
                        if not line.strip():
                            continue
                        response = json.loads(line)
                        if response.get("request_id") != request_id:
                            continue  # event or unrelated reply
                        if response.get("error") == "success":
                            return CommandResult(success=True, data=response.get("data"))
                        return CommandResult(
                            success=False, error=response.get("error", "Unknown error")
                        )

        except FileNotFoundError:
            return CommandResult(success=False, error="Socket not found")
        except ConnectionRefusedError:
            return CommandResult(success=False, error="Connection refused")
        except socket.timeout:
            return CommandResult(success=False, error="Connection timeout")
        except json.JSONDecodeError as e:
            return CommandResult(success=False, error=f"Invalid JSON response: {e}")
        except OSError as e:
            return CommandResult(success=False, error=f"Socket error: {e}")

    def is_connected(self) -> bool:
        """Check if mpv is responding by querying its PID."""
        return self.send_command(["get_property", "pid"]).success


class MpvEngine(EventEmitter):
    """MediaEngine implementation backed by mpv.

    Call start() to launch mpv and start_events() from inside the event
    loop to begin emitting TimeUpdate, PlayStateChanged, LoadedMetadata
    and Ended events.
    """

    # Properties sampled on every poll
    STATUS_PROPERTIES = ("time-pos", "duration", "pause", "eof-reached", "idle-active")
    SERIAL_KEY = "load-serial"

    def __init__(
        self,
        socket_path: str | None = None,
        backend: MpvBackend | None = None,
        mpv_path: str | None = None,
        media_root: str | Path | None = None,
        poll_interval: float | None = None,
        startup_timeout: float | None = None,
        load_grace: float = 2.0,
    ):
        """Initialize the engine.

        Args:
            socket_path: mpv IPC socket. Defaults to config.MPV_SOCKET_PATH.
            backend: Optional backend for testing. If None, uses SocketBackend.
            mpv_path: mpv executable. Defaults to config.MPV_PATH.
            media_root: Root for relative audio URIs. Defaults to config.MEDIA_ROOT.
            poll_interval: Seconds between status polls.
            startup_timeout: Seconds to wait for mpv's socket in start().
            load_grace: Seconds a load may sit idle before it counts as failed.
        """
        super().__init__()
        self.socket_path = socket_path or config.MPV_SOCKET_PATH
        self._backend = backend or SocketBackend(self.socket_path)
        self.mpv_path = mpv_path or config.MPV_PATH
        self.media_root = Path(media_root) if media_root is not None else config.MEDIA_ROOT
        self.poll_interval = config.POLL_INTERVAL if poll_interval is None else poll_interval
        self.startup_timeout = (
            config.STARTUP_TIMEOUT if startup_timeout is None else startup_timeout
        )
        self.load_grace = load_grace

        self._process: subprocess.Popen | None = None
        self._poll_task: asyncio.Task | None = None
        # Bumped by every load(); _ready_serial catches up when the load succeeds
        self._load_serial = 0
        self._ready_serial = 0
        self._reset_tracking()
        self._connected = self._backend.is_connected()

    def _reset_tracking(self) -> None:
        self._last_time: float | None = None
        self._last_paused: bool | None = None
        self._last_eof = False
        self._duration_reported = False

    # Process lifecycle

    def start(self, volume: float = 1.0) -> bool:
        """Launch mpv in idle mode and wait for its IPC socket.

        Returns:
            True if mpv became responsive within the startup timeout.
        """
        if self.refresh():
            return True

        socket_path = Path(self.socket_path)
        if socket_path.exists():
            try:
                socket_path.unlink()
            except OSError:
                pass

        args = [
            self.mpv_path,
            "--idle=yes",
            "--keep-open=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self.socket_path}",
            f"--volume={round(config.clamp_volume(volume) * 100)}",
        ]
        try:
            self._process = subprocess.Popen(
                args,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to start mpv ({self.mpv_path}): {e}")
            return False

        deadline = time.monotonic() + self.startup_timeout
        while time.monotonic() < deadline:
            if self.refresh():
                logger.info(f"mpv started with IPC at {self.socket_path}")
                return True
            time.sleep(0.1)

        logger.error(f"mpv did not open {self.socket_path} within {self.startup_timeout}s")
        return False

    def stop(self) -> None:
        """Stop event polling and quit mpv."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self.refresh():
            self._backend.send_command(["quit"])
        self._connected = False
        if self._process is not None:
            try:
                self._process.wait(timeout=2)
            except subprocess.TimeoutExpired:
                self._process.kill()
            self._process = None

    def start_events(self) -> asyncio.Task:
        """Start the status poll loop on the running event loop."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        return self._poll_task

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            if not await asyncio.to_thread(self.refresh):
                continue
            if self.loading:
                continue
            status = await asyncio.to_thread(self.read_status)
            self.process_status(status)

    # Property access

    @property
    def available(self) -> bool:
        """Connection state as of the last refresh; never touches the socket."""
        return self._connected

    @property
    def loading(self) -> bool:
        return self._ready_serial != self._load_serial

    def refresh(self) -> bool:
        """Query mpv and update the cached connection state. Blocking."""
        self._connected = self._backend.is_connected()
        return self._connected

    def get_property(self, name: str) -> Any:
        result = self._backend.send_command(["get_property", name])
        return result.data if result.success else None

    def set_property(self, name: str, value: Any) -> CommandResult:
        return self._backend.send_command(["set_property", name, value])

    def read_status(self) -> dict:
        """Read the properties that drive engine events.

        The result is stamped under SERIAL_KEY with the load it was read
        for, so a status that arrives after a newer load() can be dropped.
        """
        status = {self.SERIAL_KEY: self._load_serial}
        for name in self.STATUS_PROPERTIES:
            status[name] = self.get_property(name)
        return status

    def process_status(self, status: dict) -> None:
        """Emit events for whatever changed since the previous poll."""
        serial = status.get(self.SERIAL_KEY, self._load_serial)
        if serial != self._load_serial or self.loading:
            logger.debug(f"Dropping mpv status read for load {serial}")
            return
        if status.get("idle-active"):
            return

        duration = status.get("duration")
        if duration is not None and not self._duration_reported:
            self._duration_reported = True
            self.emit(LoadedMetadata(float(duration)))

        position = status.get("time-pos")
        if position is not None and position != self._last_time:
            self._last_time = position
            self.emit(TimeUpdate(float(position)))

        paused = status.get("pause")
        if paused is not None and paused != self._last_paused:
            self._last_paused = paused
            self.emit(PlayStateChanged(not paused))

        eof = bool(status.get("eof-reached"))
        # eof-reached stays true with keep-open; emit once per false->true edge
        if eof and not self._last_eof:
            self._last_eof = True
            self.emit(Ended())
        elif not eof:
            self._last_eof = False

    # MediaEngine commands

    def resolve_uri(self, uri: str) -> str:
        """Map a playlist URI onto something mpv can open."""
        if "://" in uri:
            return uri
        path = Path(uri)
        if path.is_absolute() and path.exists():
            return str(path)
        return str(self.media_root / uri.lstrip("/"))

    async def load(self, uri: str) -> Metadata:
        """Load a resource and wait until mpv knows its duration.

        Raises:
            LoadFailure: If mpv rejects the file or drops back to idle.
        """
        self._load_serial += 1
        serial = self._load_serial
        target = self.resolve_uri(uri)

        # Start paused; play() resumes
        await asyncio.to_thread(self.set_property, "pause", True)
        result = await asyncio.to_thread(
            self._backend.send_command, ["loadfile", target, "replace"]
        )
        if not result.success:
            raise LoadFailure(uri, result.error or "loadfile failed")
        self._reset_tracking()
        logger.debug(f"mpv loading {target}")

        loop = asyncio.get_running_loop()
        grace_deadline = loop.time() + self.load_grace
        seen_active = False
        while True:
            if serial != self._load_serial:
                raise LoadFailure(uri, "superseded by a newer load")

            idle = await asyncio.to_thread(self.get_property, "idle-active")
            duration = await asyncio.to_thread(self.get_property, "duration")
            if duration is not None and not idle:
                self._duration_reported = True
                self._ready_serial = serial
                return Metadata(duration=float(duration))

            if idle:
                if seen_active or loop.time() >= grace_deadline:
                    raise LoadFailure(uri, "mpv could not open the resource")
            else:
                seen_active = True

            await asyncio.sleep(self.poll_interval)

    async def play(self) -> None:
        result = await asyncio.to_thread(self.set_property, "pause", False)
        if not result.success:
            raise PlaybackBlocked(result.error or "mpv refused to play")

    def pause(self) -> None:
        self.set_property("pause", True)

    def seek_to(self, time: float) -> None:
        self._backend.send_command(["seek", time, "absolute"])

    def set_volume(self, volume: float) -> None:
        # mpv volume is 0-100
        self.set_property("volume", round(config.clamp_volume(volume) * 100))
