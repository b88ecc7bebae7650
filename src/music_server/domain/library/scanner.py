"""
Music library indexing.

Walks library directories for supported audio files, extracts their
metadata and adds a song record for each one to the catalog.
"""

import os
from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger

from .catalog import Catalog
from .metadata import extract_song_metadata
from .models import Song

DEFAULT_SUPPORTED_FORMATS = [".mp3", ".wav", ".flac", ".aiff", ".aac", ".wma", ".ogg"]

ProgressCallback = Callable[[str, Song], None]  # (file_path, song)


def is_supported_format(file_path: str | Path, supported_formats: Iterable[str]) -> bool:
    """Check if file format is supported (case-insensitive)."""
    suffix = Path(file_path).suffix.lower()
    return bool(suffix) and suffix in {fmt.lower() for fmt in supported_formats}


def index_file(
    catalog: Catalog,
    file_path: str | Path,
    include_album_image: bool = False,
) -> Song:
    """Extract metadata from one file and add it to the catalog."""
    path = Path(file_path).absolute()
    logger.debug(f"Reading metadata for: {path}")
    metadata = extract_song_metadata(str(path), include_album_image=include_album_image)
    song = catalog.add_file(path, metadata)
    logger.info(
        f"Indexed ({song.id}): {song.file_path} | title={song.title!r} "
        f"artist={song.artist!r} album={song.album!r} genre={song.genre!r} "
        f"year={song.year!r} length={song.track_length}s"
    )
    return song


def index_directory(
    catalog: Catalog,
    directory: str | Path,
    supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS,
    include_album_image: bool = False,
    progress_callback: Optional[ProgressCallback] = None,
    _visited: Optional[set[str]] = None,
) -> list[Song]:
    """Recursively index a directory.

    Entries are visited in name order, so the IDs handed out for the same
    tree are reproducible. Directories that cannot be read are skipped.

    Args:
        catalog: Catalog receiving the songs
        directory: Directory to walk
        supported_formats: Extensions to index, with leading dot
        include_album_image: Extract cover art as well
        progress_callback: Optional callback(file_path, song) per indexed file

    Returns:
        Songs added by this walk
    """
    formats = [fmt.lower() for fmt in supported_formats]
    visited = _visited if _visited is not None else set()
    directory = Path(directory)

    # Symlinked directories can form loops
    real_path = os.path.realpath(directory)
    if real_path in visited:
        logger.debug(f"Already walked {directory} (via {real_path}), skipping")
        return []
    visited.add(real_path)

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as e:
        logger.warning(f"Folder {directory} is empty or inaccessible: {e}")
        return []

    songs: list[Song] = []
    for entry in entries:
        try:
            is_dir = entry.is_dir()
            is_file = not is_dir and entry.is_file()
        except OSError as e:
            logger.warning(f"Cannot stat {entry.path}: {e}")
            continue

        if is_dir:
            songs.extend(
                index_directory(
                    catalog,
                    entry.path,
                    formats,
                    include_album_image=include_album_image,
                    progress_callback=progress_callback,
                    _visited=visited,
                )
            )
        elif is_file and is_supported_format(entry.name, formats):
            song = index_file(catalog, entry.path, include_album_image=include_album_image)
            songs.append(song)
            if progress_callback:
                progress_callback(song.file_path, song)

    return songs


def index_library(
    catalog: Catalog,
    library_paths: Iterable[str | Path],
    supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS,
    include_album_image: bool = False,
    progress_callback: Optional[ProgressCallback] = None,
) -> list[Song]:
    """Index every configured library root, in order.

    Returns:
        All songs added
    """
    formats = list(supported_formats)
    visited: set[str] = set()
    all_songs: list[Song] = []

    for library_path in library_paths:
        path = Path(library_path).expanduser()
        if not path.is_dir():
            logger.warning(f"Library path does not exist or is not a folder: {path}")
            continue

        logger.info(f"Indexing folder: {path.absolute()}")
        songs = index_directory(
            catalog,
            path,
            formats,
            include_album_image=include_album_image,
            progress_callback=progress_callback,
            _visited=visited,
        )
        all_songs.extend(songs)

    logger.info(f"Library scan complete: {len(all_songs)} songs indexed")
    return all_songs


def search_songs(songs: Iterable[Song], query: str) -> list[Song]:
    """Search songs by title, album, genre, artist or file name."""
    query = query.lower()
    results = []

    for song in songs:
        search_fields = [
            song.title,
            song.album,
            song.genre,
            song.artist,
            song.file_name,
        ]

        if any(query in (field or "").lower() for field in search_fields):
            results.append(song)

    return results
