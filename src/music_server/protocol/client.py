"""Client for fetching the catalog and song bytes from a running server."""

import json
import os
import socket
from pathlib import Path
from typing import Iterator, Optional

from music_server.domain.library.models import Song
from music_server.exceptions import (
    ProtocolError,
    ServerBusyError,
    SongNotFoundError,
    SongUnavailableError,
)

from .commands import (
    DOWNLOAD,
    ERROR_BUSY,
    ERROR_NOT_FOUND,
    ERROR_PREFIX,
    ERROR_UNAVAILABLE,
    LIST,
    STREAM,
    format_request,
    parse_error,
)
from .server import DEFAULT_PORT

DEFAULT_TIMEOUT = 10.0
RECV_CHUNK_SIZE = 64 * 1024


def _connect(host: str, port: int, timeout: Optional[float]) -> socket.socket:
    return socket.create_connection((host, port), timeout=timeout)


def _raise_for_error(line: bytes, song_id: Optional[int] = None) -> None:
    """Raise the typed exception for an ERROR line; do nothing otherwise."""
    parsed = parse_error(line)
    if parsed is None:
        return
    code, detail = parsed
    if code == ERROR_NOT_FOUND:
        raise SongNotFoundError(song_id, detail or None)
    if code == ERROR_UNAVAILABLE:
        raise SongUnavailableError(detail)
    if code == ERROR_BUSY:
        raise ServerBusyError(detail)
    raise ProtocolError(f"Server error {code}: {detail}")


def _recv_line(sock: socket.socket) -> bytes:
    """Read until newline or EOF."""
    data = b""
    while True:
        chunk = sock.recv(RECV_CHUNK_SIZE)
        if not chunk:
            break
        data += chunk
        if b"\n" in chunk:
            break
    return data


def fetch_catalog(
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> list[Song]:
    """
    Request the song list from a server.

    Args:
        host: Server address
        port: Server port
        timeout: Socket timeout in seconds

    Returns:
        Songs in the server's catalog

    Raises:
        OSError: If the server cannot be reached
        ServerBusyError: If the server refused the connection
        ProtocolError: If the response is not a JSON array of songs
    """
    with _connect(host, port, timeout) as sock:
        sock.sendall(format_request(LIST))
        response = _recv_line(sock)

    if not response:
        raise ProtocolError("No response from server")
    _raise_for_error(response)

    try:
        data = json.loads(response.decode("utf-8"))
        return [Song.from_dict(item) for item in data]
    except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
        raise ProtocolError(f"Invalid song list from server: {e}") from e


def iter_song_bytes(
    host: str,
    port: int,
    song_id: int,
    command: str = STREAM,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> Iterator[bytes]:
    """
    Yield a song's bytes as they arrive.

    The connection is opened when iteration starts and closed when the
    server finishes the transfer or the generator is closed.

    Raises:
        SongNotFoundError: If the server does not know the song
        SongUnavailableError: If the server cannot read the song file
        ServerBusyError: If the server refused the connection
        OSError: On connection errors
    """
    if command not in (STREAM, DOWNLOAD):
        raise ValueError(f"Not a file command: {command}")

    with _connect(host, port, timeout) as sock:
        sock.sendall(format_request(command, song_id))

        # Hold back the first bytes until they cannot be an error line
        head = b""
        while len(head) < len(ERROR_PREFIX):
            chunk = sock.recv(RECV_CHUNK_SIZE)
            if not chunk:
                break
            head += chunk

        if head.startswith(ERROR_PREFIX):
            while b"\n" not in head:
                chunk = sock.recv(RECV_CHUNK_SIZE)
                if not chunk:
                    break
                head += chunk
            _raise_for_error(head, song_id)

        if head:
            yield head

        while True:
            chunk = sock.recv(RECV_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


def download_song(
    host: str,
    port: int,
    song_id: int,
    destination: str | Path,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
) -> int:
    """
    Save a song to disk.

    The file only appears at destination once the transfer completed.

    Returns:
        Number of bytes written

    Raises:
        SongNotFoundError, SongUnavailableError, ServerBusyError, OSError
    """
    destination = Path(destination)
    temp_path = destination.with_name(destination.name + ".part")
    size = 0
    try:
        with open(temp_path, "wb") as f:
            for chunk in iter_song_bytes(host, port, song_id, DOWNLOAD, timeout):
                f.write(chunk)
                size += len(chunk)
        os.replace(temp_path, destination)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise
    return size
