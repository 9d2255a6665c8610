from __future__ import annotations

from typing import List

from dvphoto.core.config import ValidationConfig
from dvphoto.core.models import ImageBuffer
from dvphoto.validation.report import StageOutcome, make_finding


def check_dimensions(image: ImageBuffer, config: ValidationConfig) -> StageOutcome:
    w, h = image.width, image.height
    ok = w == config.target_width and h == config.target_height
    findings = []
    if not ok:
        findings.append(
            make_finding(
                "invalid_dimensions",
                config,
                detail=f"Current: {w}x{h}.",
                metrics={"width": w, "height": h},
            )
        )
    return StageOutcome(
        name="dimensions",
        findings=findings,
        measurements={
            "width": w,
            "height": h,
            "expectedWidth": config.target_width,
            "expectedHeight": config.target_height,
            "aspectRatio": w / h if h else 0.0,
            "isValid": ok,
        },
    )


def check_file_size(byte_length: int, config: ValidationConfig) -> StageOutcome:
    size_kb = byte_length / 1024.0
    too_large = byte_length > config.max_file_size_bytes
    too_small = byte_length < config.min_file_size_bytes
    findings = []
    if too_large:
        findings.append(
            make_finding("file_too_large", config, detail=f"Current: {size_kb:.0f}KB.", metrics={"sizeKB": size_kb})
        )
    if too_small:
        findings.append(
            make_finding("file_too_small", config, detail=f"Current: {size_kb:.0f}KB.", metrics={"sizeKB": size_kb})
        )
    return StageOutcome(
        name="fileSize",
        findings=findings,
        measurements={
            "sizeKB": round(size_kb, 2),
            "sizeBytes": byte_length,
            "minSizeKB": config.min_file_size_kb,
            "maxSizeKB": config.max_file_size_kb,
            "isValid": not (too_large or too_small),
        },
    )


def check_format(image: ImageBuffer, config: ValidationConfig) -> StageOutcome:
    fmt_ok = image.source_format.upper() in config.accepted_formats
    ext = image.declared_extension
    ext_ok = ext is None or ext in config.accepted_extensions
    ok = fmt_ok and ext_ok
    findings = []
    if not ok:
        detected = image.source_format + (f" (.{ext})" if ext else "")
        findings.append(
            make_finding(
                "wrong_format",
                config,
                detail=f"Detected: {detected}.",
                metrics={"format": image.source_format, "extension": ext},
            )
        )
    return StageOutcome(
        name="format",
        findings=findings,
        measurements={"format": image.source_format, "declaredExtension": ext, "isValid": ok},
    )


def run_basic_checks(image: ImageBuffer, config: ValidationConfig) -> List[StageOutcome]:
    """
    Dimension, file-size and format checks. All of them always run so that several
    findings can be reported together.
    """
    return [
        check_dimensions(image, config),
        check_file_size(image.byte_length, config),
        check_format(image, config),
    ]
