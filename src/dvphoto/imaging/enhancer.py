"""
Normalize a photo towards the DV requirements before re-validating it:
- Crops a square (centered, or around a given point such as the face center)
- Resizes it to exactly 600x600 with Lanczos interpolation
- Applies a mild brightness / contrast / saturation adjustment
- Sharpens lightly with a 3x3 convolution

The enhancer never decides validity; run the validator on its output.
"""

from __future__ import annotations

import io
import logging
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageEnhance

from dvphoto.core.config import EnhanceParams, ValidationConfig
from dvphoto.core.errors import InsufficientResolutionError
from dvphoto.core.models import ImageBuffer
from dvphoto.imaging.decoder import decode_image

logger = logging.getLogger(__name__)

SHARPEN_KERNEL = np.array(
    [
        [0.0, -0.25, 0.0],
        [-0.25, 2.0, -0.25],
        [0.0, -0.25, 0.0],
    ],
    dtype=np.float32,
)


def _crop_square_with_padding(
    rgb: np.ndarray,
    center_xy: Tuple[float, float],
    size: int,
    pad_color: Tuple[int, int, int] = (255, 255, 255),
) -> np.ndarray:
    """
    Crop a size x size square centered at center_xy.
    If the crop goes out of bounds, pad with pad_color.
    """
    h, w = rgb.shape[:2]
    cx, cy = center_xy
    half = size / 2.0

    left = int(round(cx - half))
    top = int(round(cy - half))
    right = left + size
    bottom = top + size

    out = np.full((size, size, 3), pad_color, dtype=np.uint8)

    src_left = max(0, left)
    src_top = max(0, top)
    src_right = min(w, right)
    src_bottom = min(h, bottom)

    if src_left >= src_right or src_top >= src_bottom:
        return out

    dst_left = src_left - left
    dst_top = src_top - top
    dst_right = dst_left + (src_right - src_left)
    dst_bottom = dst_top + (src_bottom - src_top)

    out[dst_top:dst_bottom, dst_left:dst_right] = rgb[src_top:src_bottom, src_left:src_right]
    return out


def _resize(rgb: np.ndarray, size: int) -> np.ndarray:
    h, w = rgb.shape[:2]
    if (w, h) == (size, size):
        return rgb.copy()
    return cv2.resize(rgb, (size, size), interpolation=cv2.INTER_LANCZOS4)


def _adjust_tone(rgb: np.ndarray, params: EnhanceParams) -> np.ndarray:
    img = Image.fromarray(rgb, "RGB")
    if params.brightness != 1.0:
        img = ImageEnhance.Brightness(img).enhance(params.brightness)
    if params.contrast != 1.0:
        img = ImageEnhance.Contrast(img).enhance(params.contrast)
    if params.saturation != 1.0:
        img = ImageEnhance.Color(img).enhance(params.saturation)
    return np.asarray(img, dtype=np.uint8)


def _sharpen(rgb: np.ndarray) -> np.ndarray:
    # filter2D saturates to uint8 for uint8 input
    return cv2.filter2D(rgb, -1, SHARPEN_KERNEL, borderType=cv2.BORDER_REFLECT)


def enhance(
    image: ImageBuffer,
    params: Optional[EnhanceParams] = None,
    center: Optional[Tuple[float, float]] = None,
) -> ImageBuffer:
    """
    Produce a new size x size buffer from `image`.

    Args:
      image: decoded source photo; it is never modified.
      params: enhancement settings (default EnhanceParams()).
      center: optional (x, y) to center the square crop on, e.g. the face center. The
        crop side is the shorter image side; areas outside the photo are padded white.

    Raises:
      InsufficientResolutionError: the shorter side is below params.size. Upscaling
        would pass the dimension check without the detail the rule is there for.
    """
    params = params or EnhanceParams()
    h, w = image.height, image.width
    side = min(w, h)
    if side < params.size:
        raise InsufficientResolutionError(side, params.size)

    if center is None:
        center = (w / 2.0, h / 2.0)
    square = _crop_square_with_padding(image.pixels, center, size=side)
    out = _resize(square, params.size)
    out = _adjust_tone(out, params)
    if params.sharpen:
        out = _sharpen(out)

    logger.debug("Enhanced %dx%d -> %dx%d (crop center %.0f,%.0f)", w, h, params.size, params.size, *center)
    return ImageBuffer.from_array(out, source_format="JPEG", byte_length=0)


def encode_jpeg(image: ImageBuffer, quality: int = 95) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(np.ascontiguousarray(image.pixels), "RGB").save(buf, format="JPEG", quality=quality, optimize=True)
    return buf.getvalue()


def encode_within_size(image: ImageBuffer, max_bytes: int, quality: int = 95, min_quality: int = 70) -> bytes:
    """
    Encode as JPEG, stepping quality down by 5 until the file fits in `max_bytes`.
    Returns the smallest attempt if even `min_quality` does not fit.
    """
    q = quality
    data = encode_jpeg(image, q)
    while len(data) > max_bytes and q - 5 >= min_quality:
        q -= 5
        data = encode_jpeg(image, q)
    logger.debug("Encoded JPEG at quality %d: %d bytes (limit %d)", q, len(data), max_bytes)
    return data


def enhance_bytes(
    data: bytes,
    extension: Optional[str] = None,
    params: Optional[EnhanceParams] = None,
    config: Optional[ValidationConfig] = None,
    center: Optional[Tuple[float, float]] = None,
) -> bytes:
    """Decode, enhance and re-encode; the result is sized to the configured file limit."""
    params = params or EnhanceParams()
    config = config or ValidationConfig()
    image = decode_image(data, declared_extension=extension)
    out = enhance(image, params, center=center)
    return encode_within_size(out, config.max_file_size_bytes, quality=params.jpeg_quality)
