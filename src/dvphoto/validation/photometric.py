from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

from dvphoto.core.config import ValidationConfig
from dvphoto.core.models import FaceRegion, ImageBuffer, PhotometricStats
from dvphoto.validation.report import StageOutcome, make_finding

logger = logging.getLogger(__name__)


def margin_band_mask(h: int, w: int, margin_ratio: float) -> np.ndarray:
    """Peripheral band of the frame, at least 10 px wide."""
    m = max(10, int(margin_ratio * min(h, w)))
    m = max(1, min(m, h // 2, w // 2))
    mask = np.zeros((h, w), dtype=bool)
    mask[:m, :] = True
    mask[h - m :, :] = True
    mask[:, :m] = True
    mask[:, w - m :] = True
    return mask


def background_mask(
    h: int, w: int, face: Optional[FaceRegion], config: ValidationConfig
) -> Tuple[np.ndarray, str]:
    """
    Pixels treated as background.

    With a face: everything outside the (padded) face box and above the bottom of that
    box, so the torso below the chin is not sampled. Without a face, or if that leaves
    nothing, the peripheral margin band.
    """
    if face is not None:
        pad_x = config.background_face_padding * face.width
        pad_y = config.background_face_padding * face.height
        left = int(max(0, np.floor(face.left - pad_x)))
        right = int(min(w, np.ceil(face.right + pad_x)))
        top = int(max(0, np.floor(face.top - pad_y)))
        bottom = int(min(h, np.ceil(face.bottom + pad_y)))

        mask = np.zeros((h, w), dtype=bool)
        mask[:bottom, :] = True
        mask[top:bottom, left:right] = False
        if mask.any():
            return mask, "face_excluded"
    return margin_band_mask(h, w, config.background_margin_ratio), "margin_band"


def compute_stats(image: ImageBuffer, face: Optional[FaceRegion], config: ValidationConfig) -> PhotometricStats:
    luma = image.luma()
    mask, source = background_mask(image.height, image.width, face, config)
    bg = luma[mask]
    return PhotometricStats(
        avg_brightness=float(luma.mean()),
        variance=float(luma.var()),
        background_avg_brightness=float(bg.mean()) if bg.size else 0.0,
        background_variance=float(bg.var()) if bg.size else 0.0,
        background_source=source,
        background_pixels=int(bg.size),
    )


def _face_or_frame(luma: np.ndarray, face: Optional[FaceRegion]) -> np.ndarray:
    if face is None:
        return luma
    h, w = luma.shape
    x0, x1 = int(max(0, face.left)), int(min(w, round(face.right)))
    y0, y1 = int(max(0, face.top)), int(min(h, round(face.bottom)))
    patch = luma[y0:y1, x0:x1]
    return patch if patch.size >= 4 else luma


def lighting_balance(luma: np.ndarray, face: Optional[FaceRegion]) -> Tuple[float, float]:
    """Mean brightness of the left and right halves of the face (or the frame)."""
    region = _face_or_frame(luma, face)
    half = region.shape[1] // 2
    if half < 1:
        m = float(region.mean())
        return m, m
    return float(region[:, :half].mean()), float(region[:, region.shape[1] - half :].mean())


def sharpness(luma: np.ndarray, face: Optional[FaceRegion]) -> float:
    """Variance of the Laplacian; low values mean a blurry image."""
    region = _face_or_frame(luma, face)
    if face is None:
        h, w = region.shape
        region = region[h // 4 : h - h // 4, w // 4 : w - w // 4]
    if min(region.shape) < 3:
        return 0.0
    gray = np.clip(region, 0, 255).astype(np.uint8)
    return float(cv2.Laplacian(gray, cv2.CV_64F).var())


def evaluate_photometrics(
    image: ImageBuffer, face: Optional[FaceRegion], config: ValidationConfig
) -> Tuple[PhotometricStats, List[StageOutcome]]:
    """
    Background, lighting, shadow and sharpness checks.

    Returns the raw stats plus one StageOutcome per check, in reporting order.
    """
    stats = compute_stats(image, face, config)
    luma = image.luma()

    # Rule: background brightness and plainness
    bg_findings = []
    if stats.background_avg_brightness < config.min_background_brightness:
        bg_findings.append(
            make_finding(
                "background_not_plain",
                config,
                detail=f"Average brightness {stats.background_avg_brightness:.0f} "
                f"(minimum {config.min_background_brightness:.0f}).",
                metrics={"avgBrightness": stats.background_avg_brightness},
            )
        )
    if stats.background_variance > config.max_background_variance:
        bg_findings.append(
            make_finding(
                "complex_background",
                config,
                metrics={"variance": stats.background_variance},
            )
        )
    background = StageOutcome(
        name="background",
        findings=bg_findings,
        measurements={
            "avgBrightness": stats.background_avg_brightness,
            "variance": stats.background_variance,
            "sampledPixels": stats.background_pixels,
            "source": stats.background_source,
            "isValid": not bg_findings,
        },
    )

    # Rule: exposure and balance
    light_findings = []
    if stats.avg_brightness < config.min_brightness:
        light_findings.append(
            make_finding("image_too_dark", config, detail=f"Average brightness {stats.avg_brightness:.0f}.")
        )
    elif stats.avg_brightness > config.max_brightness:
        light_findings.append(
            make_finding("image_too_bright", config, detail=f"Average brightness {stats.avg_brightness:.0f}.")
        )
    if stats.variance < config.min_image_variance:
        light_findings.append(
            make_finding(
                "low_contrast",
                config,
                detail=f"Brightness variance {stats.variance:.0f}.",
                metrics={"variance": stats.variance},
            )
        )
    left, right = lighting_balance(luma, face)
    if abs(left - right) > config.max_lighting_imbalance:
        light_findings.append(
            make_finding("unbalanced_lighting", config, metrics={"left": left, "right": right})
        )
    lighting = StageOutcome(
        name="lighting",
        findings=light_findings,
        measurements={
            "avgBrightness": stats.avg_brightness,
            "variance": stats.variance,
            "leftBrightness": left,
            "rightBrightness": right,
            "range": [config.min_brightness, config.max_brightness],
            "isValid": not light_findings,
        },
    )

    # Rule: shadows (uneven luma across the frame)
    shadow_findings = []
    if stats.variance > config.max_image_variance:
        shadow_findings.append(make_finding("shadows_detected", config, metrics={"variance": stats.variance}))
    shadows = StageOutcome(
        name="shadows",
        findings=shadow_findings,
        measurements={"variance": stats.variance, "isValid": not shadow_findings},
    )

    # Rule: focus
    sharp = sharpness(luma, face)
    quality_findings = []
    if sharp < config.min_sharpness:
        quality_findings.append(make_finding("image_blurry", config, metrics={"sharpness": sharp}))
    quality = StageOutcome(
        name="quality",
        findings=quality_findings,
        measurements={"sharpness": sharp, "isValid": not quality_findings},
    )

    logger.debug(
        "Photometrics: avg=%.1f var=%.1f bg_avg=%.1f bg_var=%.1f (%s) sharpness=%.1f",
        stats.avg_brightness,
        stats.variance,
        stats.background_avg_brightness,
        stats.background_variance,
        stats.background_source,
        sharp,
    )
    return stats, [background, lighting, shadows, quality]
