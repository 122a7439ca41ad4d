"""
Command line interface for playmusic.

Lists the playlist and runs an interactive playback session driven by
single-letter commands read from stdin.
"""

import asyncio
import logging

import click

from . import config
from .controller import PlaybackController
from .engine import MediaEngine, MemoryEngine
from .errors import PlaylistError
from .models import PlaybackState
from .mpv import MpvEngine
from .playlist import Playlist

logger = logging.getLogger("playmusic")

SESSION_HELP = """Commands:
  p          play/pause
  n          next track
  b          previous track
  s SECONDS  seek
  v LEVEL    volume (0.0-1.0)
  i          show status
  h          show this help
  q          quit"""


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


def load_playlist(path: str | None) -> Playlist:
    """Load the playlist from ``path``, PLAYMUSIC_PLAYLIST, or the bundled one."""
    path = path or config.PLAYLIST_PATH
    try:
        return Playlist.from_file(path) if path else Playlist.default()
    except PlaylistError as e:
        raise click.ClickException(str(e))


def describe(state: PlaybackState, playlist: Playlist) -> str:
    """One-line summary of the playback state."""
    track = playlist[state.current_index]
    line = (
        f"[{state.status.value}] {state.current_index + 1}/{len(playlist)} "
        f"{track.title} - {track.subtitle} "
        f"{state.format_position()}/{state.format_duration()} "
        f"vol {round(state.volume * 100)}%"
    )
    if state.error is not None:
        line += f" ({state.error.value}: {state.error_message})"
    return line


class StatusPrinter:
    """State listener that echoes track, status and volume changes.

    Time updates alone are not printed.
    """

    def __init__(self, playlist: Playlist, echo=click.echo):
        self.playlist = playlist
        self.echo = echo
        self._last = None

    def __call__(self, state: PlaybackState) -> None:
        key = (state.current_index, state.status, state.error, state.volume)
        if key == self._last:
            return
        self._last = key
        self.echo(describe(state, self.playlist))


async def handle_line(controller: PlaybackController, line: str, echo=click.echo) -> bool:
    """Run one session command.

    Returns:
        False when the session should end.
    """
    parts = line.split()
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]

    if command in ("q", "quit"):
        return False
    if command in ("p", "play", "pause"):
        await controller.toggle_play_pause()
    elif command in ("n", "next"):
        await controller.next()
    elif command in ("b", "prev"):
        await controller.prev()
    elif command in ("s", "seek", "v", "volume"):
        try:
            value = float(args[0])
        except (IndexError, ValueError):
            echo(f"'{command}' needs a number")
            return True
        if command in ("s", "seek"):
            controller.seek_commit(value)
        else:
            controller.set_volume(value)
    elif command in ("i", "info"):
        echo(describe(controller.state, controller.playlist))
    elif command in ("h", "help", "?"):
        echo(SESSION_HELP)
    else:
        echo(f"Unknown command '{command}' (h for help)")
    return True


async def run_session(
    playlist: Playlist,
    engine: MediaEngine,
    index: int = 0,
    volume: float | None = None,
    stream=None,
    echo=click.echo,
) -> PlaybackState:
    """Drive a controller from line commands until quit or end of input."""
    stream = stream or click.get_text_stream("stdin")
    controller = PlaybackController(playlist, engine, volume=volume)
    controller.subscribe(StatusPrinter(playlist, echo))
    if isinstance(engine, MpvEngine):
        engine.start_events()

    # Commands run as tasks so input stays responsive while tracks load
    tasks: set[asyncio.Task] = set()

    def launch(coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    try:
        await controller.load_track(index, auto_play=True)
        while True:
            line = await asyncio.to_thread(stream.readline)
            if not line:
                break
            if line.strip().lower() in ("q", "quit"):
                break
            launch(handle_line(controller, line, echo))
            # Let the command start before reading more input
            await asyncio.sleep(0)
        if tasks:
            await asyncio.gather(*list(tasks), return_exceptions=True)
        await controller.wait_pending()
    finally:
        controller.close()
    return controller.state


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.help_option("-h", "--help")
def cli(debug):
    """playmusic - play a fixed playlist from the terminal."""
    setup_logging(debug or config.DEBUG)


@cli.command("tracks")
@click.option("--playlist", "playlist_path", type=click.Path(dir_okay=False),
              help="JSON playlist file (defaults to the bundled playlist)")
def tracks(playlist_path):
    """List the tracks in the playlist."""
    playlist = load_playlist(playlist_path)
    for position, track in enumerate(playlist):
        click.echo(f"{position:>3}  {track.title} - {track.subtitle}")


@cli.command("play")
@click.option("--playlist", "playlist_path", type=click.Path(dir_okay=False),
              help="JSON playlist file (defaults to the bundled playlist)")
@click.option("--index", "-i", type=int, default=0, help="Track to start with")
@click.option("--volume", "-v", type=click.FloatRange(0.0, 1.0), default=None,
              help="Initial volume (0.0-1.0)")
@click.option("--dry-run", is_flag=True,
              help="Use an in-memory engine instead of mpv")
def play(playlist_path, index, volume, dry_run):
    """Play the playlist interactively.

    Reads commands from stdin; type h for help.
    """
    playlist = load_playlist(playlist_path)

    if dry_run:
        engine = MemoryEngine(auto=True)
    else:
        engine = MpvEngine()
        start_volume = config.DEFAULT_VOLUME if volume is None else volume
        if not engine.start(volume=start_volume):
            raise click.ClickException("Could not start mpv. Is it installed and on PATH?")

    click.echo(SESSION_HELP)
    try:
        asyncio.run(run_session(playlist, engine, index=index, volume=volume))
    except KeyboardInterrupt:
        pass
    finally:
        if isinstance(engine, MpvEngine):
            engine.stop()


if __name__ == "__main__":
    cli()
