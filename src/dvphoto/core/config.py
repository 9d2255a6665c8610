from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

# Scoring categories, in the order they are reported.
CATEGORIES: Tuple[str, ...] = (
    "dimensions",
    "file_size",
    "background",
    "face_detection",
    "lighting",
    "shadows",
)

DEFAULT_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "dimensions": 20.0,
        "file_size": 15.0,
        "background": 20.0,
        "face_detection": 25.0,
        "lighting": 15.0,
        "shadows": 5.0,
    }
)

DEFAULT_CRITICAL_CODES = frozenset(
    {
        "invalid_dimensions",
        "file_too_large",
        "file_too_small",
        "wrong_format",
        "no_face_detected",
        "multiple_faces",
        "face_too_small",
        "face_too_large",
        "face_far_off_center",
    }
)

# Names used by external collaborators that don't follow the snake_case field names.
_ALIASES = {
    "min_variance": "min_image_variance",
    "max_variance": "max_image_variance",
    "min_file_size_k_b": "min_file_size_kb",
    "max_file_size_k_b": "max_file_size_kb",
    "is_baby_mode": "baby_mode",
}


@dataclass(frozen=True)
class ValidationConfig:
    """
    Every threshold, weight and limit the validation pipeline reads.

    Instances are immutable and safe to share between threads. Use `adult()` /
    `baby()` (or `for_mode`) for the two built-in profiles and `dataclasses.replace`
    to tune individual values.

    Face ratio is the face box area divided by the image area. Brightness values are
    luma on a 0-255 scale; variances are of that luma.
    """
    # Basic checks
    target_width: int = 600
    target_height: int = 600
    min_file_size_kb: float = 10.0
    max_file_size_kb: float = 240.0
    accepted_formats: Tuple[str, ...] = ("JPEG",)
    accepted_extensions: Tuple[str, ...] = ("jpg", "jpeg")
    strict_format: bool = False

    # Face locating and framing
    min_face_ratio: float = 0.50
    max_face_ratio: float = 0.69
    min_face_confidence: float = 0.7
    low_confidence_warning: float = 0.8
    center_tolerance: float = 0.15
    extreme_center_offset: float = 0.30
    check_expression: bool = True

    # Photometrics
    min_brightness: float = 80.0
    max_brightness: float = 220.0
    min_image_variance: float = 400.0
    max_image_variance: float = 2000.0
    min_background_brightness: float = 180.0
    max_background_variance: float = 1000.0
    max_lighting_imbalance: float = 30.0
    min_sharpness: float = 100.0
    background_margin_ratio: float = 0.05
    background_face_padding: float = 0.10

    # Scoring
    validation_weights: Mapping[str, float] = field(default_factory=lambda: DEFAULT_WEIGHTS)
    validity_threshold: float = 80.0
    graduated_penalty: float = 0.3
    warning_penalty: float = 0.5
    critical_codes: frozenset = DEFAULT_CRITICAL_CODES

    # Execution
    max_concurrency: int = 3
    timeout_seconds: float = 30.0

    baby_mode: bool = False

    def __post_init__(self) -> None:
        weights = {str(k): float(v) for k, v in dict(self.validation_weights).items()}
        unknown = set(weights) - set(CATEGORIES)
        if unknown:
            raise ValueError(f"Unknown scoring categories: {sorted(unknown)}")
        missing = set(CATEGORIES) - set(weights)
        if missing:
            raise ValueError(f"Missing weights for categories: {sorted(missing)}")
        if any(w < 0 for w in weights.values()):
            raise ValueError("Scoring weights must be non-negative")
        if not math.isclose(sum(weights.values()), 100.0, abs_tol=1e-6):
            raise ValueError(f"Scoring weights must sum to 100 (got {sum(weights.values()):g})")
        object.__setattr__(self, "validation_weights", MappingProxyType(weights))
        object.__setattr__(self, "critical_codes", frozenset(self.critical_codes))
        object.__setattr__(self, "accepted_formats", tuple(f.upper() for f in self.accepted_formats))
        object.__setattr__(
            self, "accepted_extensions", tuple(e.lower().lstrip(".") for e in self.accepted_extensions)
        )

        if self.target_width <= 0 or self.target_height <= 0:
            raise ValueError("Target dimensions must be positive")
        if not (0 <= self.min_file_size_kb < self.max_file_size_kb):
            raise ValueError("File size bounds must satisfy 0 <= min < max")
        if not (0.0 <= self.min_face_ratio < self.max_face_ratio <= 1.0):
            raise ValueError("Face ratio bounds must satisfy 0 <= min < max <= 1")
        if not (0.0 <= self.min_face_confidence <= 1.0):
            raise ValueError("min_face_confidence must be within [0, 1]")
        if not (0.0 <= self.min_brightness < self.max_brightness <= 255.0):
            raise ValueError("Brightness bounds must satisfy 0 <= min < max <= 255")
        if not (0.0 <= self.min_image_variance < self.max_image_variance):
            raise ValueError("Image variance bounds must satisfy 0 <= min < max")
        if not (0.0 < self.center_tolerance <= self.extreme_center_offset):
            raise ValueError("center_tolerance must be positive and not exceed extreme_center_offset")
        if not (0.0 <= self.graduated_penalty <= 1.0 and 0.0 <= self.warning_penalty <= 1.0):
            raise ValueError("Penalties must be within [0, 1]")
        if not (0.0 <= self.validity_threshold <= 100.0):
            raise ValueError("validity_threshold must be within [0, 100]")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

    @property
    def min_file_size_bytes(self) -> int:
        return int(self.min_file_size_kb * 1024)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_kb * 1024)

    @classmethod
    def adult(cls) -> "ValidationConfig":
        return cls()

    @classmethod
    def baby(cls) -> "ValidationConfig":
        """Infant profile: wider face band, lower detection bar, no eyes/expression checks."""
        return cls(
            min_face_ratio=0.40,
            max_face_ratio=0.80,
            min_face_confidence=0.5,
            check_expression=False,
            baby_mode=True,
        )

    @classmethod
    def for_mode(cls, baby: bool = False) -> "ValidationConfig":
        return cls.baby() if baby else cls.adult()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], baby: Optional[bool] = None) -> "ValidationConfig":
        """
        Build a config from a plain mapping (e.g. parsed JSON).

        Keys may be snake_case field names or their camelCase forms (`targetWidth`,
        `minFaceRatio`, `maxVariance`, ...). Values not given keep the defaults of the
        adult or baby profile; the profile is chosen by `baby`, else by a `babyMode` /
        `isBabyMode` key in the mapping.
        """
        known = {f.name for f in fields(cls)}
        overrides: dict[str, Any] = {}
        for key, value in data.items():
            name = _snake(key)
            name = _ALIASES.get(name, name)
            if name not in known:
                raise ValueError(f"Unknown configuration key: {key!r}")
            overrides[name] = value

        mode = overrides.pop("baby_mode", False) if baby is None else baby
        overrides.pop("baby_mode", None)
        for name in ("accepted_formats", "accepted_extensions"):
            if name in overrides:
                overrides[name] = tuple(overrides[name])
        if "critical_codes" in overrides:
            overrides["critical_codes"] = frozenset(overrides["critical_codes"])
        if "validation_weights" in overrides:
            weights = dict(DEFAULT_WEIGHTS)
            weights.update(overrides["validation_weights"])
            overrides["validation_weights"] = weights
        return replace(cls.for_mode(bool(mode)), **overrides)


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass(frozen=True)
class EnhanceParams:
    """
    Parameters for the enhancement pre-pass.

    size:
        Output width/height in pixels (square). Default 600.
    brightness / contrast / saturation:
        Pillow ImageEnhance factors; 1.0 leaves the image unchanged. Bounded to
        [0.5, 1.5] so the pass can never repaint the photo.
    sharpen:
        Apply a light 3x3 sharpening convolution after the tone adjustment.
    jpeg_quality:
        Quality used when the result is encoded.
    """
    size: int = 600
    brightness: float = 1.02
    contrast: float = 1.08
    saturation: float = 0.98
    sharpen: bool = True
    jpeg_quality: int = 95

    def __post_init__(self) -> None:
        if self.size < 200:
            raise ValueError("size too small; expected something like 600")
        for name in ("brightness", "contrast", "saturation"):
            value = getattr(self, name)
            if not (0.5 <= value <= 1.5):
                raise ValueError(f"{name} factor must be between 0.5 and 1.5 (got {value})")
        if not (1 <= self.jpeg_quality <= 100):
            raise ValueError("jpeg_quality must be between 1 and 100")
