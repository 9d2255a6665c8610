from __future__ import annotations

import logging
from typing import Optional

from dvphoto.core.config import ValidationConfig
from dvphoto.core.models import FaceRegion, ImageBuffer
from dvphoto.detection.base import FaceSelection
from dvphoto.validation.report import StageOutcome, make_finding

logger = logging.getLogger(__name__)


def evaluate_detection(selection: FaceSelection, config: ValidationConfig, locator_name: str = "") -> StageOutcome:
    """Turn the locator's candidates into face-count findings."""
    findings = []
    primary = selection.primary

    # Rule: exactly one face
    if selection.count == 0:
        findings.append(
            make_finding(
                "no_face_detected",
                config,
                metrics={"rejectedCandidates": selection.rejected, "minConfidence": selection.min_confidence},
            )
        )
    elif selection.count > 1:
        findings.append(
            make_finding(
                "multiple_faces",
                config,
                detail=f"Detected {selection.count} faces.",
                metrics={"faceCount": selection.count},
            )
        )

    # Rule: detection confidence
    if primary is not None and primary.confidence < config.low_confidence_warning:
        findings.append(
            make_finding(
                "low_face_confidence",
                config,
                detail=f"Confidence {primary.confidence:.2f}.",
                metrics={"confidence": primary.confidence},
            )
        )

    return StageOutcome(
        name="faceDetection",
        findings=findings,
        measurements={
            "method": locator_name,
            "faceCount": selection.count,
            "rejectedCandidates": selection.rejected,
            "confidence": primary.confidence if primary is not None else None,
            "boundingBox": primary.as_box() if primary is not None else None,
        },
    )


def evaluate_framing(image: ImageBuffer, face: Optional[FaceRegion], config: ValidationConfig) -> StageOutcome:
    """
    Face size, centering and the locator's attribute flags for the primary face.

    With no face there is nothing to measure; the missing face is already reported by
    `evaluate_detection`.
    """
    W, H = image.width, image.height
    lo, hi = config.min_face_ratio, config.max_face_ratio
    if face is None:
        return StageOutcome(
            name="framing",
            measurements={"faceRatio": None, "range": [lo, hi], "centerOffset": None},
        )

    findings = []

    # Rule: face ratio
    ratio = face.face_ratio(W, H)
    if ratio < lo:
        findings.append(make_finding("face_too_small", config, detail=f"Current: {ratio:.0%}.", metrics={"faceRatio": ratio}))
    elif ratio > hi:
        findings.append(make_finding("face_too_large", config, detail=f"Current: {ratio:.0%}.", metrics={"faceRatio": ratio}))

    # Rule: centering (offsets normalized by image size)
    cx, cy = face.center
    dx = abs(cx - W / 2.0) / W if W else 0.0
    dy = abs(cy - H / 2.0) / H if H else 0.0
    offset = max(dx, dy)
    if offset > config.extreme_center_offset:
        findings.append(make_finding("face_far_off_center", config, metrics={"x": dx, "y": dy}))
    elif offset > config.center_tolerance:
        findings.append(make_finding("face_off_center", config, metrics={"x": dx, "y": dy}))

    # Pass-through attributes from the locator
    if face.head_angle_acceptable is False:
        findings.append(make_finding("head_tilted", config))
    if config.check_expression:
        if face.eyes_open is False:
            findings.append(make_finding("eyes_closed", config))
        if face.expression_neutral is False:
            findings.append(make_finding("expression_not_neutral", config))
    if face.glasses_detected is True:
        findings.append(make_finding("glasses_detected", config))

    logger.debug("Framing: ratio=%.3f offset=(%.3f, %.3f) findings=%d", ratio, dx, dy, len(findings))
    return StageOutcome(
        name="framing",
        findings=findings,
        measurements={
            "faceRatio": ratio,
            "range": [lo, hi],
            "centerOffset": {"x": dx, "y": dy},
            "isValid": lo <= ratio <= hi,
        },
    )
