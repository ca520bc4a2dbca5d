# library/scan_library.py
from __future__ import annotations

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


def list_audio_files(directory: str, extension: str = ".mp3") -> list[str]:
    """Files of `directory` with the given extension, sorted by name."""
    if not directory or not os.path.isdir(directory):
        return []
    paths: list[str] = []
    for entry in os.scandir(directory):
        if not entry.is_file():
            continue
        if os.path.splitext(entry.name)[1] == extension:
            paths.append(os.path.join(directory, entry.name))
    paths.sort()
    return paths


def find_cover_image(directory: str, name_fragment: str) -> Optional[str]:
    """First entry (by name) of `directory` whose name contains `name_fragment`."""
    if not name_fragment or not os.path.isdir(directory):
        return None
    for name in sorted(os.listdir(directory)):
        if name_fragment in name:
            candidate = os.path.join(directory, name)
            if os.path.isfile(candidate):
                return candidate
    return None
