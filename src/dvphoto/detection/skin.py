"""Classical face locator based on skin-tone segmentation.

No model files, no network: the image is segmented with combined RGB / YCbCr /
HSV skin rules, cleaned up morphologically, and each connected region that is
roughly face-shaped is scored on size, position, left/right symmetry, dark
eye/mouth bands and even lighting. It is a fallback for when no ML detector is
available, and deterministic, which makes it useful in tests.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

import cv2
import numpy as np

from dvphoto.core.models import FaceRegion, ImageBuffer

logger = logging.getLogger(__name__)

OPTIMAL_AREA_RATIO = 0.6


def skin_mask(rgb: np.ndarray) -> np.ndarray:
    """Boolean H x W mask of skin-colored pixels."""
    c = rgb.astype(np.float32)
    r, g, b = c[:, :, 0], c[:, :, 1], c[:, :, 2]
    mx = np.maximum(np.maximum(r, g), b)
    mn = np.minimum(np.minimum(r, g), b)

    rgb_rule = (r > 95) & (g > 40) & (b > 20) & (r > g) & (r > b) & (np.abs(r - g) > 15) & ((mx - mn) > 15)

    cb = 128.0 - 0.169 * r - 0.331 * g + 0.5 * b
    cr = 128.0 + 0.5 * r - 0.419 * g - 0.081 * b
    ycbcr_rule = (cb >= 77) & (cb <= 127) & (cr >= 133) & (cr <= 173)

    hsv = cv2.cvtColor(np.ascontiguousarray(rgb), cv2.COLOR_RGB2HSV)
    hue = hsv[:, :, 0].astype(np.float32) * 2.0  # OpenCV stores H/2 for uint8
    sat = hsv[:, :, 1].astype(np.float32) / 255.0
    val = hsv[:, :, 2].astype(np.float32) / 255.0
    hsv_rule = (hue <= 50) & (sat >= 0.15) & (sat <= 0.68) & (val >= 0.35)

    # Chroma must agree; either of the other two confirms it.
    return ycbcr_rule & (rgb_rule | hsv_rule)


def _clean_mask(mask: np.ndarray) -> np.ndarray:
    m = mask.astype(np.uint8)
    m = cv2.morphologyEx(m, cv2.MORPH_OPEN, np.ones((3, 3), np.uint8))
    k = max(3, (min(m.shape[:2]) // 40) | 1)
    m = cv2.morphologyEx(m, cv2.MORPH_CLOSE, cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (k, k)))
    return m


def _dark_ratio(gray: np.ndarray, y0: int, y1: int, x0: int, x1: int, thr: float) -> float:
    band = gray[y0:y1, x0:x1]
    return float((band < thr).mean()) if band.size else 0.0


def _symmetry(patch: np.ndarray) -> float:
    half = patch.shape[1] // 2
    if half < 1:
        return 0.0
    left = patch[:, :half]
    right = np.fliplr(patch[:, patch.shape[1] - half :])
    return float(1.0 - np.abs(left - right).mean() / 255.0)


class SkinToneFaceLocator:
    """
    Heuristic face locator.

    Args:
      max_side: the image is downscaled so its longer side is at most this many
        pixels before segmentation.
      min_area_ratio / max_area_ratio: accepted box area as a fraction of the image.
      min_aspect / max_aspect: accepted box width / height.
      min_fill: minimum fraction of the box covered by skin pixels.
    """

    name = "skin"

    def __init__(
        self,
        max_side: int = 320,
        min_area_ratio: float = 0.02,
        max_area_ratio: float = 0.95,
        min_aspect: float = 0.5,
        max_aspect: float = 1.6,
        min_fill: float = 0.4,
        max_candidates: int = 5,
    ):
        self.max_side = max_side
        self.min_area_ratio = min_area_ratio
        self.max_area_ratio = max_area_ratio
        self.min_aspect = min_aspect
        self.max_aspect = max_aspect
        self.min_fill = min_fill
        self.max_candidates = max_candidates

    def detect(self, image: ImageBuffer) -> List[FaceRegion]:
        rgb = image.pixels
        h, w = rgb.shape[:2]
        scale = min(1.0, self.max_side / float(max(h, w)))
        if scale < 1.0:
            sw, sh = max(1, int(round(w * scale))), max(1, int(round(h * scale)))
            small = cv2.resize(rgb, (sw, sh), interpolation=cv2.INTER_AREA)
        else:
            sw, sh, small = w, h, np.ascontiguousarray(rgb)

        mask = _clean_mask(skin_mask(small))
        n, _labels, stats, _centroids = cv2.connectedComponentsWithStats(mask, connectivity=8)
        gray = (0.299 * small[:, :, 0] + 0.587 * small[:, :, 1] + 0.114 * small[:, :, 2]).astype(np.float32)

        regions: List[FaceRegion] = []
        for i in range(1, n):
            x, y, bw, bh, area = (int(v) for v in stats[i])
            if not self._plausible(bw, bh, area, sw, sh):
                continue
            conf = self._confidence(gray, (x, y, bw, bh), sw, sh)
            regions.append(
                FaceRegion(
                    left=x / scale,
                    top=y / scale,
                    right=min(float(w), (x + bw) / scale),
                    bottom=min(float(h), (y + bh) / scale),
                    confidence=conf,
                )
            )

        regions.sort(key=lambda r: r.confidence, reverse=True)
        logger.debug("Skin locator: %d components, %d face-like", n - 1, len(regions))
        return regions[: self.max_candidates]

    def _plausible(self, bw: int, bh: int, area: int, sw: int, sh: int) -> bool:
        if bw < 4 or bh < 4:
            return False
        aspect = bw / float(bh)
        if not (self.min_aspect <= aspect <= self.max_aspect):
            return False
        area_ratio = (bw * bh) / float(sw * sh)
        if not (self.min_area_ratio <= area_ratio <= self.max_area_ratio):
            return False
        return area / float(bw * bh) >= self.min_fill

    def _confidence(self, gray: np.ndarray, box: Tuple[int, int, int, int], sw: int, sh: int) -> float:
        x, y, bw, bh = box
        patch = gray[y : y + bh, x : x + bw]

        # Shape and placement: 30% size, 30% position, 40% symmetry
        area_ratio = (bw * bh) / float(sw * sh)
        size_score = max(0.0, 1.0 - abs(area_ratio - OPTIMAL_AREA_RATIO))
        cx, cy = x + bw / 2.0, y + bh / 2.0
        position_score = 1.0 - (abs(cx - sw / 2.0) / sw + abs(cy - sh / 2.0) / sh) / 2.0
        region_score = 0.3 * size_score + 0.3 * position_score + 0.4 * _symmetry(patch)

        # Facial features: eyes sit in the upper-middle band, the mouth in the lower band.
        eyes = _dark_ratio(gray, y + int(0.25 * bh), y + int(0.50 * bh), x, x + bw, 100.0)
        mouth = _dark_ratio(gray, y + int(0.60 * bh), y + int(0.90 * bh), x, x + bw, 120.0)
        features = (0.15 if 0.02 < eyes < 0.3 else 0.0) + (0.15 if 0.01 < mouth < 0.2 else 0.0)

        mean, std = float(patch.mean()), float(patch.std())
        lighting = 0.2 if (60.0 <= mean <= 230.0 and std < 70.0) else 0.0

        return min(1.0, 0.5 * region_score + features + lighting)
