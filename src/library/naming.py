# library/naming.py
from __future__ import annotations

import logging
import os
from typing import Optional

from library.scan_library import list_audio_files

logger = logging.getLogger(__name__)

SEPARATOR = " - "
UNKNOWN_ARTIST = "Unknown"


def _stem(path: str) -> str:
    return os.path.splitext(os.path.basename(path.rstrip("/\\")))[0]


def parse_artist_album(name: str) -> Optional[tuple[str, str]]:
    """Split "<Artist> - <Album>" into (artist, album); None without a separator."""
    parts = name.split(SEPARATOR)
    if len(parts) < 2:
        return None
    return parts[0], SEPARATOR.join(parts[1:])


def artist_album_for(path: str) -> tuple[str, str]:
    """
    Metadata for a file inside an album folder: the parent folder name wins,
    then the file's own name, then ("Unknown", <file stem>).
    """
    parent_stem = _stem(os.path.dirname(path))
    file_stem = _stem(path)

    result = parse_artist_album(parent_stem) or parse_artist_album(file_stem)
    if not result or not result[0] or not result[1]:
        return UNKNOWN_ARTIST, file_stem
    return result


def artist_album_for_directory(path: str) -> tuple[str, str]:
    dir_stem = _stem(path)
    result = parse_artist_album(dir_stem)
    if not result or not result[0] or not result[1]:
        return UNKNOWN_ARTIST, dir_stem
    return result


def parse_track_number(path: str, extension: str = ".mp3") -> Optional[int]:
    """
    Track number from "<track> - <Title>" or "<disc>-<track> - <Title>".

    Disc 1 uses the track part as is. Later discs restart their numbering, so
    the sequential number is the file's position among the sorted audio files
    of its folder.
    """
    parts = _stem(path).split(SEPARATOR)
    if len(parts) < 2:
        return None

    number_part = parts[0].strip()
    disc_parts = number_part.split("-")
    try:
        if len(disc_parts) > 1:
            if disc_parts[0] == "1":
                return int(disc_parts[1])
            return position_in_directory(path, extension)
        return int(number_part)
    except ValueError:
        logger.debug("Not a track number: %r in %s", number_part, path)
        return None


def position_in_directory(path: str, extension: str = ".mp3") -> int:
    """1-based position of `path` among the sorted `extension` files next to it."""
    target = os.path.basename(path)
    position = 1
    for file_path in list_audio_files(os.path.dirname(path), extension):
        if os.path.basename(file_path) == target:
            break
        position += 1
    return position
