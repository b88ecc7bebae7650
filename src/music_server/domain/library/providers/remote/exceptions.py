"""Remote source exceptions for error handling."""

from music_server.exceptions import MusicServerError


class RemoteFetchError(MusicServerError):
    """Base exception for remote source operations."""

    pass


class UnsupportedRemoteFileError(RemoteFetchError):
    """Raised when a URL does not point at a supported audio file."""

    def __init__(self, url: str, file_name: str = None):
        self.url = url
        self.file_name = file_name
        super().__init__(f"Unsupported remote file: {file_name or url}")
