from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from dvphoto.core.config import CATEGORIES, ValidationConfig
from dvphoto.validation.report import Finding, StageOutcome, ValidationResult

logger = logging.getLogger(__name__)

# Stage outcomes reported together under one details key.
_DETAIL_KEYS = {"faceDetection": "face", "framing": "face"}


def _clip01(x: float) -> float:
    return min(1.0, max(0.0, x))


def _band_deviation(value: float, lo: float, hi: float) -> float:
    """0 at the center of [lo, hi], 1 at (or beyond) either end."""
    mid = (lo + hi) / 2.0
    half = (hi - lo) / 2.0
    if half <= 0:
        return 0.0 if value == mid else 1.0
    return _clip01(abs(value - mid) / half)


def _measurement(outcomes: Sequence[StageOutcome], stage: str, key: str) -> Optional[float]:
    for o in outcomes:
        if o.name == stage:
            value = o.measurements.get(key)
            return float(value) if value is not None else None
    return None


def graduated_deviations(outcomes: Sequence[StageOutcome], config: ValidationConfig) -> Dict[str, float]:
    """
    How far each continuous measurement sits from the ideal, as a fraction in [0, 1].

    Face ratio and overall brightness are measured from the center of their band.
    The background ideal is pure white with no clutter, and the shadow ideal is zero
    variance. Categories without a continuous measurement are 0.
    """
    dev = {c: 0.0 for c in CATEGORIES}

    ratio = _measurement(outcomes, "framing", "faceRatio")
    if ratio is not None:
        dev["face_detection"] = _band_deviation(ratio, config.min_face_ratio, config.max_face_ratio)

    brightness = _measurement(outcomes, "lighting", "avgBrightness")
    if brightness is not None:
        dev["lighting"] = _band_deviation(brightness, config.min_brightness, config.max_brightness)

    bg_brightness = _measurement(outcomes, "background", "avgBrightness")
    bg_variance = _measurement(outcomes, "background", "variance")
    if bg_brightness is not None and bg_variance is not None:
        span = 255.0 - config.min_background_brightness
        darkness = _clip01((255.0 - bg_brightness) / span) if span > 0 else 0.0
        clutter = _clip01(bg_variance / config.max_background_variance) if config.max_background_variance > 0 else 0.0
        dev["background"] = (darkness + clutter) / 2.0

    variance = _measurement(outcomes, "shadows", "variance")
    if variance is not None and config.max_image_variance > 0:
        dev["shadows"] = _clip01(variance / config.max_image_variance)

    return dev


def score_outcomes(outcomes: Sequence[StageOutcome], config: ValidationConfig) -> tuple[float, Dict[str, Any]]:
    """
    Weighted compliance score.

    Each category contributes weight x (1 - penalty). The penalty is 1.0 when the
    category has an error; otherwise the larger of the graduated penalty (distance of
    its measurement from the ideal) and the flat warning penalty when it has a warning.
    """
    by_category: Dict[str, List[Finding]] = {c: [] for c in CATEGORIES}
    for o in outcomes:
        for f in o.findings:
            by_category[f.category].append(f)

    deviations = graduated_deviations(outcomes, config)
    breakdown: Dict[str, Any] = {}
    total = 0.0
    for category in CATEGORIES:
        weight = config.validation_weights[category]
        found = by_category[category]
        if any(f.is_critical for f in found):
            penalty = 1.0
        else:
            penalty = config.graduated_penalty * deviations[category]
            if found:
                penalty = max(penalty, config.warning_penalty)
            penalty = min(1.0, penalty)
        contribution = weight * (1.0 - penalty)
        total += contribution
        breakdown[category] = {
            "weight": weight,
            "penalty": round(penalty, 4),
            "contribution": round(contribution, 4),
            "findings": [f.code for f in found],
        }

    score = round(min(100.0, max(0.0, total)), 2)
    return score, breakdown


def aggregate(
    outcomes: Sequence[StageOutcome],
    config: ValidationConfig,
    image_path: Optional[str] = None,
    extra_details: Optional[Dict[str, Any]] = None,
) -> ValidationResult:
    """Combine stage outcomes, in execution order, into a ValidationResult."""
    errors: List[Finding] = []
    warnings: List[Finding] = []
    details: Dict[str, Any] = {}
    passed: Dict[str, bool] = {}
    for o in outcomes:
        for f in o.findings:
            (errors if f.is_critical else warnings).append(f)
        key = _DETAIL_KEYS.get(o.name, o.name)
        details.setdefault(key, {}).update(o.measurements)
        passed[key] = passed.get(key, True) and o.passed
    for key, ok in passed.items():
        details[key]["isValid"] = ok

    score, breakdown = score_outcomes(outcomes, config)
    details["score"] = breakdown
    details["mode"] = "baby" if config.baby_mode else "adult"
    if extra_details:
        details.update(extra_details)

    is_valid = not errors and score >= config.validity_threshold
    logger.info(
        "Validation %s: score=%.2f errors=%d warnings=%d",
        "passed" if is_valid else "failed",
        score,
        len(errors),
        len(warnings),
    )
    return ValidationResult(
        is_valid=is_valid,
        score=score,
        errors=tuple(errors),
        warnings=tuple(warnings),
        details=details,
        image_path=image_path,
    )
