"""
Wire commands for the catalog protocol.

Each connection carries exactly one newline-terminated command:

    LIST            -> one line holding a JSON array of songs
    STREAM <id>     -> the song file's raw bytes, then close
    DOWNLOAD <id>   -> same bytes as STREAM, for saving to disk

Failures the client must be able to tell apart from audio bytes are sent
as a single "ERROR <code> <detail>" line before the connection closes.
"""

from typing import NamedTuple, Optional

LIST = "LIST"
STREAM = "STREAM"
DOWNLOAD = "DOWNLOAD"
FILE_COMMANDS = (STREAM, DOWNLOAD)

# Longest request line read from a client
MAX_REQUEST_BYTES = 1024

ERROR_PREFIX = b"ERROR "
ERROR_NOT_FOUND = "NOT_FOUND"
ERROR_UNAVAILABLE = "UNAVAILABLE"
ERROR_BUSY = "BUSY"


class Command(NamedTuple):
    """A parsed request line."""
    name: str
    song_id: Optional[int] = None  # None when missing or not an integer
    argument: Optional[str] = None  # Raw ID token as sent


def parse_command(line: str) -> Optional[Command]:
    """Parse a request line into a Command.

    Command names are case-insensitive. File commands whose ID is missing
    or not an integer parse with song_id=None so the caller can answer
    NOT_FOUND.

    Returns:
        Command, or None for anything that is not a known command
    """
    tokens = line.split()
    if not tokens:
        return None

    name = tokens[0].upper()
    if name == LIST:
        return Command(LIST)

    if name in FILE_COMMANDS:
        argument = tokens[1] if len(tokens) > 1 else None
        song_id = None
        if argument is not None:
            try:
                song_id = int(argument)
            except ValueError:
                song_id = None
        return Command(name, song_id, argument)

    return None


def format_request(name: str, song_id: Optional[int] = None) -> bytes:
    """Encode a request line."""
    line = name if song_id is None else f"{name} {song_id}"
    return f"{line}\n".encode("utf-8")


def format_error(code: str, detail: str) -> bytes:
    """Encode an error line."""
    detail = " ".join(detail.split())
    return ERROR_PREFIX + f"{code} {detail}\n".encode("utf-8")


def parse_error(line: bytes) -> Optional[tuple[str, str]]:
    """Split an error line into (code, detail), or None if it is not one."""
    if not line.startswith(ERROR_PREFIX):
        return None
    text = line[len(ERROR_PREFIX):].decode("utf-8", errors="replace").strip()
    code, _, detail = text.partition(" ")
    return code, detail
