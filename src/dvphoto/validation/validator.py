from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from dvphoto.core.config import ValidationConfig
from dvphoto.core.models import ImageBuffer
from dvphoto.detection.base import FaceLocator, build_locator, select_faces
from dvphoto.imaging.decoder import decode_image
from dvphoto.validation.checks import run_basic_checks
from dvphoto.validation.framing import evaluate_detection, evaluate_framing
from dvphoto.validation.photometric import evaluate_photometrics
from dvphoto.validation.report import StageOutcome, ValidationResult
from dvphoto.validation.scorer import aggregate

logger = logging.getLogger(__name__)


def validate_image(
    image: ImageBuffer,
    config: Optional[ValidationConfig] = None,
    locator: Optional[FaceLocator] = None,
    image_path: Optional[str] = None,
) -> ValidationResult:
    """
    Validate a decoded photo and return a ValidationResult.

    Every stage runs, whatever the earlier ones found, so the caller gets the full list
    of problems in one pass. Findings keep stage order: basic checks, face detection,
    framing, background, lighting, shadows, quality.

    Rules are heuristics intended for user guidance. They are NOT an official
    adjudication of DV photo acceptance.
    """
    config = config or ValidationConfig()
    locator = locator or build_locator()

    outcomes: List[StageOutcome] = list(run_basic_checks(image, config))

    candidates = locator.detect(image)
    selection = select_faces(candidates, config.min_face_confidence)
    face = selection.primary
    outcomes.append(evaluate_detection(selection, config, getattr(locator, "name", type(locator).__name__)))
    outcomes.append(evaluate_framing(image, face, config))

    _stats, photometric = evaluate_photometrics(image, face, config)
    outcomes.extend(photometric)

    return aggregate(outcomes, config, image_path=image_path)


def validate_bytes(
    data: bytes,
    extension: Optional[str] = None,
    config: Optional[ValidationConfig] = None,
    locator: Optional[FaceLocator] = None,
    image_path: Optional[str] = None,
) -> ValidationResult:
    """
    Decode and validate encoded image bytes.

    Raises:
      FormatError / UnsupportedFormatError: the bytes cannot be used at all. No
        partial result is produced in that case.
    """
    config = config or ValidationConfig()
    image = decode_image(data, declared_extension=extension, strict=config.strict_format)
    return validate_image(image, config=config, locator=locator, image_path=image_path)


def validate_file(
    path: Union[str, Path],
    config: Optional[ValidationConfig] = None,
    locator: Optional[FaceLocator] = None,
) -> ValidationResult:
    p = Path(path)
    logger.info("Validating %s", p)
    return validate_bytes(
        p.read_bytes(),
        extension=p.suffix or None,
        config=config,
        locator=locator,
        image_path=str(p),
    )


def format_report_text(result: ValidationResult, max_items: Optional[int] = 3) -> str:
    """
    Human-readable report. `max_items` limits how many errors and how many warnings are
    listed; the result itself always keeps every finding.
    """
    lines: List[str] = []
    lines.append("DV Photo Validation Report")
    lines.append("-" * 26)
    lines.append(f"Overall: {'PASS' if result.is_valid else 'FAIL'} (score {result.score:.1f}/100)")
    lines.append(result.status_message)

    for title, mark, findings in (("Errors", "❌", result.errors), ("Warnings", "⚠️", result.warnings)):
        if not findings:
            continue
        lines.append("")
        lines.append(f"{title}:")
        shown = findings if max_items is None else findings[:max_items]
        for f in shown:
            lines.append(f"{mark} {f.message}")
            lines.append(f"   → {f.suggestion}")
        hidden = len(findings) - len(shown)
        if hidden > 0:
            lines.append(f"   … and {hidden} more")
    return "\n".join(lines)
