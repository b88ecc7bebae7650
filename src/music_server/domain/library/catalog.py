"""
In-memory song catalog.

The catalog is filled once by the indexers, frozen, and then shared
read-only by every request handler for the rest of the process.
"""

from pathlib import Path
from typing import Any, Iterator, Optional

from music_server.exceptions import CatalogFrozenError

from .models import Song

# Metadata keys copied onto the song record when present
_METADATA_FIELDS = (
    "title",
    "album",
    "genre",
    "artist",
    "album_artist",
    "year",
    "track_length",
    "producers",
    "publisher",
    "album_image_base64",
)


class Catalog:
    """Mapping of song ID to Song with sequential, never reused IDs."""

    def __init__(self) -> None:
        self._songs: dict[int, Song] = {}
        self._last_id = 0
        self._frozen = False

    def add_file(self, file_path: str | Path, metadata: Optional[dict[str, Any]] = None) -> Song:
        """Create a song record for a file and store it under the next ID.

        Args:
            file_path: Path of the audio file (made absolute)
            metadata: Partial metadata from the extractor; missing keys get defaults

        Returns:
            The stored Song

        Raises:
            CatalogFrozenError: If the catalog is already being served
        """
        if self._frozen:
            raise CatalogFrozenError(f"Cannot add {file_path}: catalog is frozen")

        path = Path(file_path).absolute()
        values: dict[str, Any] = {}
        for field in _METADATA_FIELDS:
            value = (metadata or {}).get(field)
            if value:
                values[field] = value

        self._last_id += 1
        song = Song(
            id=self._last_id,
            title=str(values.pop("title", path.name)),
            file_path=str(path),
            file_name=path.name,
            **values,
        )
        self._songs[song.id] = song
        return song

    def get(self, song_id: int) -> Optional[Song]:
        """Look up a song by ID."""
        return self._songs.get(song_id)

    def songs(self) -> list[Song]:
        """All songs ordered by ID."""
        return [self._songs[song_id] for song_id in sorted(self._songs)]

    def to_dicts(self) -> list[dict[str, Any]]:
        """All songs as JSON dicts, ordered by ID."""
        return [song.to_dict() for song in self.songs()]

    def freeze(self) -> None:
        """Mark the catalog read-only. Further add_file calls raise."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._songs)

    def __contains__(self, song_id: object) -> bool:
        return song_id in self._songs

    def __iter__(self) -> Iterator[Song]:
        return iter(self.songs())

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "building"
        return f"<Catalog songs={len(self._songs)} {state}>"


__all__ = ["Catalog"]
