from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from dvphoto.core.config import ValidationConfig
from dvphoto.validation.codes import FindingKind, Severity, lookup


@dataclass(frozen=True)
class Finding:
    """
    A single compliance finding produced by a pipeline stage.
    """
    code: str
    kind: FindingKind
    severity: Severity
    message: str
    suggestion: str
    metrics: Optional[dict[str, Any]] = None

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.ERROR

    @property
    def category(self) -> str:
        return lookup(self.code).category

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "code": self.code,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "suggestion": self.suggestion,
            "isCritical": self.is_critical,
        }
        if self.metrics:
            out["metrics"] = dict(self.metrics)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Finding":
        return cls(
            code=data["code"],
            kind=FindingKind(data["kind"]),
            severity=Severity(data["severity"]),
            message=data["message"],
            suggestion=data.get("suggestion", ""),
            metrics=data.get("metrics"),
        )


def make_finding(
    code: str,
    config: ValidationConfig,
    detail: Optional[str] = None,
    metrics: Optional[dict[str, Any]] = None,
) -> Finding:
    """Build a finding with the catalog message; severity comes from `config.critical_codes`."""
    info = lookup(code)
    message = info.message.format(**vars(config))
    if detail:
        message = f"{message} {detail}"
    severity = Severity.ERROR if code in config.critical_codes else Severity.WARNING
    return Finding(
        code=code,
        kind=info.kind,
        severity=severity,
        message=message,
        suggestion=info.suggestion,
        metrics=metrics,
    )


@dataclass(frozen=True)
class StageOutcome:
    """
    Findings plus raw measurements from one stage. Stages never score; the scorer
    is the only consumer of these.
    """
    name: str
    findings: list[Finding] = field(default_factory=list)
    measurements: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return not self.findings


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of one validation call. Never mutated; re-validating produces a new result.
    """
    is_valid: bool
    score: float
    errors: tuple[Finding, ...]
    warnings: tuple[Finding, ...]
    details: dict[str, Any]
    image_path: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        # The result owns a private copy of the stage measurements.
        object.__setattr__(self, "details", copy.deepcopy(dict(self.details)))
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def error_codes(self) -> list[str]:
        return [f.code for f in self.errors]

    @property
    def warning_codes(self) -> list[str]:
        return [f.code for f in self.warnings]

    @property
    def status_message(self) -> str:
        if self.is_valid:
            return "Photo meets all DV requirements"
        if self.has_errors:
            n = len(self.errors)
            return f"Photo has {n} issue{'s' if n > 1 else ''} to fix"
        return "Photo needs improvement"

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "score": self.score,
            "errors": [f.to_dict() for f in self.errors],
            "warnings": [f.to_dict() for f in self.warnings],
            "details": copy.deepcopy(self.details),
            "imagePath": self.image_path,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationResult":
        ts = data.get("timestamp")
        return cls(
            is_valid=bool(data.get("isValid", False)),
            score=float(data.get("score", 0.0)),
            errors=tuple(Finding.from_dict(f) for f in data.get("errors", [])),
            warnings=tuple(Finding.from_dict(f) for f in data.get("warnings", [])),
            details=dict(data.get("details", {})),
            image_path=data.get("imagePath"),
            timestamp=datetime.fromisoformat(ts) if ts else datetime.now(timezone.utc),
        )
