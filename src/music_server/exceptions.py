"""Exceptions shared by the catalog builder, the server and the client."""


class MusicServerError(Exception):
    """Base exception for music server operations."""

    pass


class CatalogFrozenError(MusicServerError):
    """Raised when a song is added after the catalog was frozen for serving."""

    pass


class ProtocolError(MusicServerError):
    """Raised when the server sends something the client cannot interpret."""

    pass


class SongNotFoundError(ProtocolError):
    """Raised when the requested song ID is not in the server's catalog."""

    def __init__(self, song_id, message: str = None):
        self.song_id = song_id
        super().__init__(message or f"Song {song_id} is not in the catalog")


class SongUnavailableError(ProtocolError):
    """Raised when the song exists but its file can no longer be read."""

    pass


class ServerBusyError(ProtocolError):
    """Raised when the server refused the connection because it is at capacity."""

    pass


class PayloadTooSmallError(MusicServerError):
    """Raised when a buffered payload is too small to be real audio."""

    def __init__(self, size: int, minimum: int):
        self.size = size
        self.minimum = minimum
        super().__init__(f"Payload of {size} bytes is below the {minimum} byte minimum")
