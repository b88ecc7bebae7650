"""Remote audio sources downloaded from a URL list at startup."""

from .exceptions import RemoteFetchError, UnsupportedRemoteFileError
from .fetch import (
    RemoteFetchResult,
    download_file,
    fetch_remote_song,
    fetch_remote_songs,
    filename_from_url,
    read_url_list,
)

__all__ = [
    "RemoteFetchError",
    "UnsupportedRemoteFileError",
    "RemoteFetchResult",
    "download_file",
    "fetch_remote_song",
    "fetch_remote_songs",
    "filename_from_url",
    "read_url_list",
]
