"""
Audio metadata extraction.

Reads embedded tags with Mutagen across ID3 (MP3, WAV, AIFF), MP4/AAC,
Vorbis comments (FLAC, OGG) and ASF (WMA). Extraction never raises: a file
whose tags cannot be read simply yields no metadata.
"""

import base64
from typing import Any, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen.flac import Picture

# Metadata field -> tag names to try, in order
# ID3 frames, MP4 atoms, Vorbis comments (case-insensitive), ASF attributes
TAG_NAMES: dict[str, list[str]] = {
    "title": ["TIT2", "\xa9nam", "title", "Title"],
    "album": ["TALB", "\xa9alb", "album", "WM/AlbumTitle"],
    "genre": ["TCON", "\xa9gen", "genre", "WM/Genre"],
    "artist": ["TPE1", "\xa9ART", "artist", "Author"],
    "album_artist": ["TPE2", "aART", "albumartist", "album artist", "WM/AlbumArtist"],
    "year": ["TDRC", "TYER", "\xa9day", "date", "year", "WM/Year"],
    "publisher": ["TPUB", "organization", "publisher", "label", "WM/Publisher"],
    "producers": ["TXXX:PRODUCER", "producer", "WM/Producer"],
}


def get_tag_value(audio_file: MutagenFile, tag_names: list[str]) -> Optional[str]:
    """Get the first non-empty tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for odd keys
            continue
        if not value:
            continue
        if isinstance(value, list):
            value = value[0]
        text = str(value).strip()
        if text:
            return text
    return None


def _get_involved_people(audio_file: MutagenFile, role: str) -> Optional[str]:
    """Names listed under a role in an ID3 TIPL frame, comma-joined."""
    tags = getattr(audio_file, "tags", None)
    if tags is None or not hasattr(tags, "getall"):
        return None
    names = [
        person
        for frame in tags.getall("TIPL")
        for person_role, person in frame.people
        if person_role.strip().lower() == role and person.strip()
    ]
    return ", ".join(names) if names else None


def extract_cover_image(audio_file: MutagenFile) -> Optional[bytes]:
    """Return the first embedded cover image, if the format carries one."""
    tags = getattr(audio_file, "tags", None)

    # ID3 (MP3, WAV, AIFF)
    if tags is not None and hasattr(tags, "getall"):
        for frame in tags.getall("APIC"):
            if frame.data:
                return frame.data

    # FLAC
    pictures = getattr(audio_file, "pictures", None)
    if pictures:
        return pictures[0].data

    if tags is None:
        return None

    # MP4/AAC
    covers = audio_file.get("covr")
    if covers:
        return bytes(covers[0])

    # Ogg Vorbis/Opus carry FLAC picture blocks as base64 comments
    blocks = get_tag_value(audio_file, ["metadata_block_picture"])
    if blocks:
        return Picture(base64.b64decode(blocks)).data

    return None


def extract_song_metadata(file_path: str, include_album_image: bool = False) -> dict[str, Any]:
    """Extract metadata from an audio file using mutagen.

    Args:
        file_path: Path of a file with a supported audio extension
        include_album_image: Also extract embedded cover art as base64

    Returns:
        Dict holding only the fields that were found: title, album, genre,
        artist, album_artist, year, track_length, producers, publisher and
        album_image_base64. Empty when the file has no readable tags.
    """
    try:
        audio_file = MutagenFile(file_path)
        if audio_file is None:
            logger.debug(f"No tag reader for {file_path}")
            return {}

        metadata: dict[str, Any] = {}
        for field, tag_names in TAG_NAMES.items():
            value = get_tag_value(audio_file, tag_names)
            if value:
                metadata[field] = value

        # ID3v2.4 and Vorbis dates may be full timestamps
        if "year" in metadata:
            metadata["year"] = metadata["year"].split("-")[0]

        if "producers" not in metadata:
            producers = _get_involved_people(audio_file, "producer")
            if producers:
                metadata["producers"] = producers

        # Technical info
        length = getattr(getattr(audio_file, "info", None), "length", None)
        if length:
            metadata["track_length"] = int(round(length))

        if include_album_image:
            image = extract_cover_image(audio_file)
            if image:
                metadata["album_image_base64"] = base64.b64encode(image).decode("ascii")

        return metadata

    except Exception as e:
        logger.warning(f"Metadata extraction failed for {file_path}: {e}")
        return {}
