"""
Fixed, circular playlist.

Example usage:
    >>> from playmusic.playlist import Playlist
    >>> playlist = Playlist.default()
    >>> playlist.next_index(len(playlist) - 1)
    0
"""

import json
from collections.abc import Iterable, Iterator
from importlib.resources import files
from pathlib import Path

from .errors import PlaylistError
from .models import Track


class Playlist:
    """Immutable, index-addressable sequence of tracks.

    Navigation arithmetic is modulo the playlist length, so stepping
    past either end wraps around.
    """

    def __init__(self, tracks: Iterable[Track]):
        self._tracks: tuple[Track, ...] = tuple(tracks)
        if not self._tracks:
            raise PlaylistError("Playlist must contain at least one track")

    def __len__(self) -> int:
        return len(self._tracks)

    def __getitem__(self, index: int) -> Track:
        return self._tracks[index]

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks)

    def __repr__(self) -> str:
        return f"Playlist({len(self)} tracks)"

    def normalize(self, index: int) -> int:
        """Map any integer onto a valid index."""
        return index % len(self._tracks)

    def next_index(self, index: int) -> int:
        return (index + 1) % len(self._tracks)

    def prev_index(self, index: int) -> int:
        return (index - 1 + len(self._tracks)) % len(self._tracks)

    # Loading

    @classmethod
    def from_data(cls, data) -> "Playlist":
        """Build a playlist from decoded JSON.

        Args:
            data: A list of track objects, or a mapping with a "tracks" list.

        Raises:
            PlaylistError: If the data is not a non-empty list of valid tracks.
        """
        if isinstance(data, dict):
            data = data.get("tracks")
        if not isinstance(data, list):
            raise PlaylistError("Playlist data must be a list of tracks")

        tracks = []
        for position, entry in enumerate(data):
            if not isinstance(entry, dict):
                raise PlaylistError(f"Track {position} is not an object")
            try:
                tracks.append(Track.from_dict(entry))
            except KeyError as e:
                raise PlaylistError(f"Track {position} is missing field {e}") from e
        return cls(tracks)

    @classmethod
    def from_file(cls, path: str | Path) -> "Playlist":
        """Load a playlist from a JSON file.

        Raises:
            PlaylistError: If the file cannot be read or parsed.
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise PlaylistError(f"Cannot read playlist {path}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PlaylistError(f"Invalid JSON in playlist {path}: {e}") from e
        return cls.from_data(data)

    @classmethod
    def default(cls) -> "Playlist":
        """Load the playlist bundled with the package."""
        text = files("playmusic").joinpath("data/playlist.json").read_text(encoding="utf-8")
        return cls.from_data(json.loads(text))
