# library/cover.py
"""
Cover art descriptors in the format Jellyfin stores in the `Images` column:

    <image path>*<modification ticks>*Primary*<width>*<height>*<blurhash>

Jellyfin hashes a downscaled copy of the image; doing the same here keeps the
hashes identical to the ones the server computes itself.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, TYPE_CHECKING

import blurhash
import numpy as np
from PIL import Image

from library.scan_library import find_cover_image

if TYPE_CHECKING:
    from core.state import ProgressContext

logger = logging.getLogger(__name__)

BLURHASH_MAXSIZE = 5
# .NET DateTime ticks (100ns since 0001-01-01) at the Unix epoch.
UNIX_EPOCH_TICKS = 621355968000000000
IMAGE_TYPE = "Primary"


def to_dotnet_ticks(unix_millis: int) -> int:
    return unix_millis * 10000 + UNIX_EPOCH_TICKS


def blurhash_components(width: int, height: int) -> tuple[int, int]:
    """Blurhash grid (x, y): the longer side gets the maximum cell count."""
    if width == height:
        return BLURHASH_MAXSIZE, BLURHASH_MAXSIZE
    if width > height:
        ratio = width // height
        return BLURHASH_MAXSIZE, max(1, BLURHASH_MAXSIZE // ratio)
    ratio = height // width
    return max(1, BLURHASH_MAXSIZE // ratio), BLURHASH_MAXSIZE


def _warn(message: str, ctx: Optional["ProgressContext"]) -> None:
    if ctx is not None:
        ctx.notify(message, "warn")
    else:
        logger.warning(message)


def _decoded_channels(image: Image.Image) -> int:
    # Palette entries expand to RGB, or RGBA when the file carries transparency.
    if image.mode == "P":
        return 4 if "transparency" in image.info else 3
    return len(image.getbands())


def encode_image(image_path: str, ctx: Optional["ProgressContext"] = None) -> str:
    """Descriptor for one image file, or "" when it can't be decoded as RGB."""
    try:
        with Image.open(image_path) as image:
            image.load()
            if _decoded_channels(image) != 3:
                _warn(f"Couldn't decode '{image_path}' to 3 channel RGB.", ctx)
                return ""
            rgb = image.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        _warn(f"Unable to load image '{image_path}': {e}", ctx)
        return ""

    width, height = rgb.size
    x, y = blurhash_components(width, height)

    target_height = x * 32
    target_width = max(1, round(width * target_height / height))
    resampled = rgb.resize((target_width, target_height), Image.Resampling.LANCZOS)
    pixels = np.asarray(resampled, dtype=np.uint8)

    hash_value = blurhash.encode(pixels, components_x=x, components_y=y)

    mtime_millis = os.stat(image_path).st_mtime_ns // 1_000_000
    ticks = to_dotnet_ticks(mtime_millis)
    canonical = os.path.realpath(image_path)

    return f"{canonical}*{ticks}*{IMAGE_TYPE}*{width}*{height}*{hash_value}"


def encode_cover(directory: str, image_name: str, ctx: Optional["ProgressContext"] = None) -> str:
    """Descriptor of the first file in `directory` whose name contains `image_name`."""
    image_path = find_cover_image(directory, image_name)
    if image_path is None:
        logger.debug("No cover matching %r in %s", image_name, directory)
        return ""
    return encode_image(image_path, ctx)
