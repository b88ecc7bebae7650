"""Per-connection request handling: one command, one response, then close."""

import json
import socket
from typing import Optional

from loguru import logger

from music_server.domain.library.catalog import Catalog

from .commands import (
    ERROR_NOT_FOUND,
    ERROR_UNAVAILABLE,
    LIST,
    MAX_REQUEST_BYTES,
    Command,
    format_error,
    parse_command,
)


def read_request_line(client_socket: socket.socket) -> Optional[str]:
    """Read bytes up to the first newline, EOF, or MAX_REQUEST_BYTES.

    Returns:
        The decoded line without its terminator, or None if the client
        closed the connection before sending anything
    """
    data = b""
    while len(data) < MAX_REQUEST_BYTES:
        chunk = client_socket.recv(MAX_REQUEST_BYTES - len(data))
        if not chunk:
            break
        data += chunk
        # Newline ends the command
        if b"\n" in data:
            break

    if not data:
        return None

    line = data.split(b"\n", 1)[0]
    return line.decode("utf-8", errors="replace").strip()


class RequestHandler:
    """Serves one request per connection against a read-only catalog."""

    def __init__(self, catalog: Catalog):
        """
        Initialize the handler.

        Args:
            catalog: Frozen catalog shared by every connection
        """
        self.catalog = catalog

    def handle(self, client_socket: socket.socket, address: tuple = None) -> None:
        """
        Handle a client connection and close it.

        Errors are logged and end this connection only.

        Args:
            client_socket: Connected client socket
            address: Peer address, for logging
        """
        peer = _format_address(address)
        try:
            request = read_request_line(client_socket)
            if request is None:
                logger.debug(f"{peer} closed the connection without a command")
                return

            logger.info(f"Received request from {peer}: {request!r}")
            command = parse_command(request)
            if command is None:
                logger.warning(f"Ignoring unknown command from {peer}: {request!r}")
                return

            if command.name == LIST:
                self.send_catalog(client_socket, peer)
            else:
                self.send_song(client_socket, command, peer)

        except OSError as e:
            # Includes the client hanging up mid-transfer
            logger.warning(f"Connection with {peer} ended early: {e}")
        except Exception:
            logger.exception(f"Error handling client {peer}")
        finally:
            try:
                client_socket.close()
            except OSError:
                pass

    def send_catalog(self, client_socket: socket.socket, peer: str = "client") -> None:
        """Send every song as one line of JSON."""
        songs = self.catalog.to_dicts()
        payload = json.dumps(songs, ensure_ascii=False) + "\n"
        logger.info(f"Sending song list ({len(songs)} songs) to {peer}")
        client_socket.sendall(payload.encode("utf-8"))

    def send_song(self, client_socket: socket.socket, command: Command, peer: str = "client") -> None:
        """Send a song file's raw bytes, or an error line if it cannot be served."""
        song = self.catalog.get(command.song_id) if command.song_id is not None else None
        if song is None:
            logger.warning(f"{command.name} from {peer}: no song with ID {command.argument!r}")
            detail = (
                f"song {command.argument} is not in the catalog"
                if command.argument is not None
                else "missing song ID"
            )
            client_socket.sendall(format_error(ERROR_NOT_FOUND, detail))
            return

        try:
            song_file = open(song.file_path, "rb")
        except OSError as e:
            logger.error(f"Cannot open {song.file_path} for song {song.id}: {e}")
            client_socket.sendall(
                format_error(ERROR_UNAVAILABLE, f"song {song.id} cannot be read")
            )
            return

        logger.info(f"{command.name} song {song.id} to {peer}: {song.title}")
        with song_file:
            sent = client_socket.sendfile(song_file)
        logger.info(f"Finished sending song {song.id} to {peer} ({sent} bytes)")


def _format_address(address) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address or "client")
