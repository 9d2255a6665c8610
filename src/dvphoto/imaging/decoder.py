from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from dvphoto.core.errors import FormatError, UnsupportedFormatError
from dvphoto.core.models import ImageBuffer

logger = logging.getLogger(__name__)

# Still-image formats Pillow can hand us as a single RGB frame.
DECODABLE_FORMATS = frozenset({"JPEG", "MPO", "PNG", "WEBP", "BMP", "GIF", "TIFF"})
JPEG_FORMATS = frozenset({"JPEG", "MPO"})  # MPO is a JPEG with extra frames (phone cameras)
JPEG_EXTENSIONS = frozenset({"jpg", "jpeg"})


def normalize_extension(extension: Optional[str]) -> Optional[str]:
    if not extension:
        return None
    return extension.lower().rsplit(".", 1)[-1] or None


def decode_image(
    data: bytes,
    declared_extension: Optional[str] = None,
    strict: bool = False,
) -> ImageBuffer:
    """
    Decode encoded image bytes into an RGB ImageBuffer.

    The format is sniffed from the bytes, never trusted from the extension. With
    `strict=True` anything that is not a JPEG (by content or by declared extension) is
    rejected; otherwise other decodable formats load so the format check can report
    them alongside the rest of the findings.

    Raises:
      FormatError: bytes are empty, truncated or not an image.
      UnsupportedFormatError: the image is in a format the pipeline does not accept.
    """
    ext = normalize_extension(declared_extension)
    if not data:
        raise FormatError("Image data is empty.")

    try:
        img = Image.open(io.BytesIO(data))
        fmt = (img.format or "").upper()
        if fmt not in DECODABLE_FORMATS:
            raise UnsupportedFormatError(f"Unsupported image format: {fmt or 'unknown'}.", fmt or None)
        if strict and (fmt not in JPEG_FORMATS or (ext is not None and ext not in JPEG_EXTENSIONS)):
            raise UnsupportedFormatError(
                f"Photo must be a JPEG file (got {fmt}{f', .{ext}' if ext else ''}).", fmt
            )
        img.load()
        img = ImageOps.exif_transpose(img)
        if img.mode != "RGB":
            img = img.convert("RGB")
        pixels = np.asarray(img, dtype=np.uint8)
    except UnidentifiedImageError as e:
        raise FormatError("Unable to read image data; the file is corrupt or not an image.") from e
    except (OSError, SyntaxError, ValueError) as e:
        # Pillow reports truncated/corrupt streams as OSError (and occasionally SyntaxError).
        raise FormatError(f"Error decoding image: {e}") from e

    tag = "JPEG" if fmt in JPEG_FORMATS else fmt
    logger.debug("Decoded %s image %dx%d (%d bytes)", tag, pixels.shape[1], pixels.shape[0], len(data))
    return ImageBuffer(pixels=pixels, byte_length=len(data), source_format=tag, declared_extension=ext)


def decode_file(path: Union[str, Path], strict: bool = False) -> ImageBuffer:
    """Read `path` and decode it, using its suffix as the declared extension."""
    p = Path(path)
    return decode_image(p.read_bytes(), declared_extension=p.suffix or None, strict=strict)
