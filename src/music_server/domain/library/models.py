"""
Music library domain models.

Contains the immutable song record served by the catalog.
"""

from pathlib import Path
from typing import Any, NamedTuple

UNKNOWN = "Unknown"

# Song field -> JSON key, in wire order
_JSON_KEYS = (
    ("id", "id"),
    ("title", "title"),
    ("album", "album"),
    ("genre", "genre"),
    ("file_path", "filePath"),
    ("artist", "artist"),
    ("album_artist", "albumArtist"),
    ("year", "year"),
    ("track_length", "trackLength"),
    ("producers", "producers"),
    ("publisher", "publisher"),
    ("file_name", "fileName"),
    ("album_image_base64", "albumImageBase64"),
)


class Song(NamedTuple):
    """Represents an indexed audio file and its metadata.

    Text fields that could not be read from tags hold "Unknown",
    track_length is 0 when the duration is unknown, and album_image_base64
    is empty when no cover art was extracted.
    """
    id: int
    title: str
    file_path: str  # Absolute path of the backing file
    album: str = UNKNOWN
    genre: str = UNKNOWN
    artist: str = UNKNOWN
    album_artist: str = UNKNOWN
    year: str = UNKNOWN
    track_length: int = 0  # in seconds
    producers: str = UNKNOWN
    publisher: str = UNKNOWN
    file_name: str = ""
    album_image_base64: str = ""

    @property
    def extension(self) -> str:
        """Lowercase extension of the backing file, including the dot."""
        return Path(self.file_path).suffix.lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase dict used on the wire and in snapshots."""
        return {key: getattr(self, field) for field, key in _JSON_KEYS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Song":
        """Build a Song from its JSON dict.

        Accepts the reduced variant that only carries id, title, album,
        genre and filePath.
        """
        values = {}
        for field, key in _JSON_KEYS:
            if key in data and data[key] is not None:
                values[field] = data[key]
        values["id"] = int(values["id"])
        if "track_length" in values:
            values["track_length"] = int(values["track_length"])
        values.setdefault("title", Path(values.get("file_path", "")).name)
        values.setdefault("file_path", "")
        return cls(**values)
