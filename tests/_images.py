"""Synthetic photos for tests.

Faces are flat skin-colored ellipses with dark eyes and a mouth; that is enough
for the skin-tone locator and for the photometric stages.
"""

import io
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image

from tests._test_path import SRC  # noqa: F401

from dvphoto.core.models import FaceRegion, ImageBuffer

SKIN = (224, 172, 140)


def canvas(width: int = 600, height: int = 600, value: int = 235, noise: float = 0.0, seed: int = 0) -> np.ndarray:
    arr = np.full((height, width, 3), value, dtype=np.float32)
    if noise > 0:
        rng = np.random.default_rng(seed)
        arr += rng.normal(0.0, noise, size=arr.shape)
    return np.clip(arr, 0, 255).astype(np.uint8)


def draw_face(arr: np.ndarray, box: Tuple[int, int, int, int], skin=SKIN) -> np.ndarray:
    """Draw an ellipse inscribed in box=(left, top, right, bottom), with eyes and a mouth."""
    left, top, right, bottom = box
    bw, bh = right - left, bottom - top
    cx, cy = left + bw // 2, top + bh // 2
    cv2.ellipse(arr, (cx, cy), (bw // 2, bh // 2), 0, 0, 360, skin, -1)
    eye_r = max(2, bw // 20)
    eye_y = top + int(0.38 * bh)
    for ex in (left + int(0.32 * bw), left + int(0.68 * bw)):
        cv2.circle(arr, (ex, eye_y), eye_r, (40, 30, 30), -1)
    cv2.ellipse(arr, (cx, top + int(0.75 * bh)), (max(3, bw // 8), max(2, bh // 40)), 0, 0, 360, (60, 30, 30), -1)
    return arr


def add_noise(arr: np.ndarray, sigma: float, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    out = arr.astype(np.float32) + rng.normal(0.0, sigma, size=arr.shape)
    return np.clip(out, 0, 255).astype(np.uint8)


def portrait(
    ratio: float = 0.60,
    width: int = 600,
    height: int = 600,
    background: int = 205,
    noise: float = 8.0,
    dx: int = 0,
    dy: int = 0,
) -> Tuple[np.ndarray, Tuple[int, int, int, int]]:
    """A face on a plain background, with sensor-like noise so it is not flagged as blurry."""
    box = face_box(ratio, width, height, dx=dx, dy=dy)
    arr = draw_face(canvas(width, height, value=background), box)
    return add_noise(arr, noise), box


def face_box(ratio: float, width: int = 600, height: int = 600, dx: int = 0, dy: int = 0) -> Tuple[int, int, int, int]:
    """Centered square box whose area is `ratio` of the image, shifted by (dx, dy)."""
    side = int(round((ratio * width * height) ** 0.5))
    left = (width - side) // 2 + dx
    top = (height - side) // 2 + dy
    return left, top, left + side, top + side


def region(box: Sequence[float], confidence: float = 0.95, **flags) -> FaceRegion:
    left, top, right, bottom = box
    return FaceRegion(left=left, top=top, right=right, bottom=bottom, confidence=confidence, **flags)


def jpeg_bytes(arr: np.ndarray, quality: Optional[int] = None, size_range: Tuple[int, int] = (20_000, 200_000)) -> bytes:
    """
    Encode as JPEG. With no explicit quality, pick the highest quality whose output falls
    inside `size_range` so the file-size check passes.
    """
    img = Image.fromarray(arr, "RGB")
    if quality is not None:
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=quality)
        return buf.getvalue()
    lo, hi = size_range
    for q in (95, 92, 90, 85, 80, 75, 70, 60, 50, 40, 30):
        buf = io.BytesIO()
        img.save(buf, format="JPEG", quality=q)
        data = buf.getvalue()
        if lo <= len(data) <= hi:
            return data
    raise AssertionError(f"Could not encode a JPEG within {size_range} bytes")


def png_bytes(arr: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(arr, "RGB").save(buf, format="PNG")
    return buf.getvalue()


class StubLocator:
    """Returns fixed candidates, like patching the landmark detector."""

    name = "stub"

    def __init__(self, regions: List[FaceRegion]):
        self.regions = list(regions)
        self.calls = 0

    def detect(self, image: ImageBuffer) -> List[FaceRegion]:
        self.calls += 1
        return list(self.regions)
