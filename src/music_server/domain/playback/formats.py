"""
Playback strategy selection for streamed songs.

A client never sniffs the payload: the strategy is chosen from the
extension of the song's file path as published in the catalog.
"""

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Iterable

from music_server.exceptions import PayloadTooSmallError

# Buffered payloads smaller than this are not real audio
MIN_BUFFERED_PAYLOAD_BYTES = 1024


class PlaybackStrategy(str, Enum):
    """How a client should consume a STREAM payload."""

    STREAM_DECODE = "stream_decode"  # decode while bytes arrive
    BUFFERED_EXTERNAL = "buffered_external"  # spool to disk, hand to a media player
    NATIVE_PCM = "native_pcm"  # platform audio input stream
    UNSUPPORTED = "unsupported"


_STRATEGIES = {
    ".mp3": PlaybackStrategy.STREAM_DECODE,
    ".aac": PlaybackStrategy.BUFFERED_EXTERNAL,
    ".ogg": PlaybackStrategy.BUFFERED_EXTERNAL,
    ".wma": PlaybackStrategy.UNSUPPORTED,
}


def select_playback_strategy(file_path: str) -> PlaybackStrategy:
    """Pick the playback strategy for a song from its file extension.

    Examples:
        >>> select_playback_strategy("/music/a.MP3")
        <PlaybackStrategy.STREAM_DECODE: 'stream_decode'>
        >>> select_playback_strategy("/music/b.flac")
        <PlaybackStrategy.NATIVE_PCM: 'native_pcm'>
    """
    suffix = Path(file_path).suffix.lower()
    return _STRATEGIES.get(suffix, PlaybackStrategy.NATIVE_PCM)


def spool_to_temp_file(
    chunks: Iterable[bytes],
    suffix: str,
    min_size: int = MIN_BUFFERED_PAYLOAD_BYTES,
) -> Path:
    """Write a streamed payload to a temporary file for an external player.

    Args:
        chunks: Payload bytes in order
        suffix: File extension for the temp file (e.g. ".ogg")
        min_size: Smallest payload accepted

    Returns:
        Path of the temporary file (the caller removes it)

    Raises:
        PayloadTooSmallError: If fewer than min_size bytes arrived
    """
    fd, name = tempfile.mkstemp(prefix="music-server-", suffix=suffix)
    path = Path(name)
    size = 0
    try:
        with os.fdopen(fd, "wb") as f:
            for chunk in chunks:
                f.write(chunk)
                size += len(chunk)
        if size < min_size:
            raise PayloadTooSmallError(size, min_size)
    except Exception:
        path.unlink(missing_ok=True)
        raise
    return path
