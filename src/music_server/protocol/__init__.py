"""Catalog protocol: one newline-terminated command per TCP connection.

The server answers LIST with the catalog as JSON and STREAM/DOWNLOAD with
a song's raw file bytes.
"""

from .client import download_song, fetch_catalog, iter_song_bytes
from .server import DEFAULT_PORT, CatalogServer

__all__ = [
    "DEFAULT_PORT",
    "CatalogServer",
    "download_song",
    "fetch_catalog",
    "iter_song_bytes",
]
