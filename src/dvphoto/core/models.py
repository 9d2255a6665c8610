from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class ImageBuffer:
    """
    A decoded image, owned by the pipeline invocation that created it.

    pixels:
        H x W x 3 RGB uint8 array. Marked read-only on construction.
    byte_length:
        Size in bytes of the encoded source (0 when built from an array).
    source_format:
        Format tag sniffed from the encoded bytes ("JPEG", "PNG", ...).
    declared_extension:
        Lower-case extension the caller supplied, without the dot, if any.
    """
    pixels: np.ndarray
    byte_length: int
    source_format: str
    declared_extension: Optional[str] = None

    def __post_init__(self) -> None:
        arr = self.pixels
        if arr.ndim != 3 or arr.shape[2] != 3 or arr.dtype != np.uint8:
            raise ValueError(f"Expected an HxWx3 uint8 array, got shape {arr.shape} dtype {arr.dtype}")
        if arr.flags.writeable:
            arr = arr.copy()
            arr.setflags(write=False)
            object.__setattr__(self, "pixels", arr)

    @classmethod
    def from_array(
        cls,
        pixels: np.ndarray,
        source_format: str = "JPEG",
        byte_length: int = 0,
        declared_extension: Optional[str] = None,
    ) -> "ImageBuffer":
        arr = np.asarray(pixels)
        if arr.ndim == 2:
            arr = np.stack([arr, arr, arr], axis=-1)
        if arr.shape[-1] == 4:
            arr = arr[:, :, :3]
        return cls(
            pixels=np.ascontiguousarray(arr, dtype=np.uint8),
            byte_length=byte_length,
            source_format=source_format,
            declared_extension=declared_extension,
        )

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size_kb(self) -> float:
        return self.byte_length / 1024.0

    def luma(self) -> np.ndarray:
        """Per-pixel brightness (ITU-R BT.601 weights) as float32."""
        rgb = self.pixels.astype(np.float32)
        return 0.299 * rgb[:, :, 0] + 0.587 * rgb[:, :, 1] + 0.114 * rgb[:, :, 2]


@dataclass(frozen=True)
class FaceRegion:
    """
    One face candidate reported by a locator.

    Box coordinates are in pixels of the image the locator was given. The attribute
    flags are None when the locator cannot tell.
    """
    left: float
    top: float
    right: float
    bottom: float
    confidence: float
    eyes_open: Optional[bool] = None
    expression_neutral: Optional[bool] = None
    head_angle_acceptable: Optional[bool] = None
    glasses_detected: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.right < self.left or self.bottom < self.top:
            raise ValueError("Face box has negative extent")
        object.__setattr__(self, "confidence", float(min(1.0, max(0.0, self.confidence))))

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.right) / 2.0, (self.top + self.bottom) / 2.0

    def face_ratio(self, image_width: int, image_height: int) -> float:
        image_area = float(image_width * image_height)
        if image_area <= 0:
            return 0.0
        return min(1.0, max(0.0, self.area / image_area))

    def as_box(self) -> dict[str, float]:
        return {"left": self.left, "top": self.top, "right": self.right, "bottom": self.bottom}


@dataclass(frozen=True)
class PhotometricStats:
    avg_brightness: float
    variance: float
    background_avg_brightness: float
    background_variance: float
    background_source: str  # "face_excluded" or "margin_band"
    background_pixels: int
