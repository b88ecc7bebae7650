"""Library domain - audio file indexing and the song catalog.

This domain handles:
- Song records and the catalog that owns them
- Metadata extraction from audio files
- Recursive indexing of library folders and remote URL lists
- JSON snapshots of the catalog
"""

# Models
from .models import UNKNOWN, Song

# Catalog
from .catalog import Catalog

# Metadata extraction
from .metadata import extract_cover_image, extract_song_metadata, get_tag_value

# Indexing and search
from .scanner import (
    DEFAULT_SUPPORTED_FORMATS,
    index_directory,
    index_file,
    index_library,
    is_supported_format,
    search_songs,
)

# Snapshots
from .persistence import load_catalog_snapshot, save_catalog

__all__ = [
    # Models
    "UNKNOWN",
    "Song",
    # Catalog
    "Catalog",
    # Metadata
    "extract_cover_image",
    "extract_song_metadata",
    "get_tag_value",
    # Scanner
    "DEFAULT_SUPPORTED_FORMATS",
    "index_directory",
    "index_file",
    "index_library",
    "is_supported_format",
    "search_songs",
    # Snapshots
    "load_catalog_snapshot",
    "save_catalog",
]
