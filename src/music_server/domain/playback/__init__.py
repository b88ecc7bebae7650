"""Playback domain - how a client consumes a streamed song.

This domain handles:
- Choosing a playback strategy from the song's file extension
- Spooling buffered payloads to a temporary file
"""

from .formats import (
    MIN_BUFFERED_PAYLOAD_BYTES,
    PlaybackStrategy,
    select_playback_strategy,
    spool_to_temp_file,
)

__all__ = [
    "MIN_BUFFERED_PAYLOAD_BYTES",
    "PlaybackStrategy",
    "select_playback_strategy",
    "spool_to_temp_file",
]
