"""Face locator interface and the candidate-selection policy.

The validation pipeline only needs something with a `detect` method; which
technique finds the faces (skin-tone heuristics, MediaPipe, anything else) is
up to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from dvphoto.core.models import FaceRegion, ImageBuffer


class FaceLocator(Protocol):
    """Protocol for face locators."""

    @property
    def name(self) -> str:
        """Return a short identifier used in result details."""
        ...

    def detect(self, image: ImageBuffer) -> list[FaceRegion]:
        """Find face candidates in an image.

        Args:
            image: decoded RGB image.

        Returns:
            Zero or more candidates, each with a confidence in [0, 1]. Order is not
            significant.
        """
        ...


@dataclass(frozen=True)
class FaceSelection:
    """
    Candidates that passed the confidence threshold, strongest first.

    `primary` is the face used for framing and background separation. It is set
    whenever at least one candidate passed, including the multiple-face case, so the
    remaining stages can still report measurements.
    """
    detected: tuple[FaceRegion, ...]
    rejected: int
    min_confidence: float

    @property
    def primary(self) -> Optional[FaceRegion]:
        return self.detected[0] if self.detected else None

    @property
    def count(self) -> int:
        return len(self.detected)


def select_faces(candidates: Sequence[FaceRegion], min_confidence: float) -> FaceSelection:
    passed = [c for c in candidates if c.confidence >= min_confidence]
    # Stable sort keeps locator order among equal confidences.
    passed.sort(key=lambda c: c.confidence, reverse=True)
    return FaceSelection(
        detected=tuple(passed),
        rejected=len(candidates) - len(passed),
        min_confidence=min_confidence,
    )


def build_locator(name: str = "skin") -> FaceLocator:
    """Create one of the bundled locators by name ("skin" or "mediapipe")."""
    key = name.lower()
    if key in ("skin", "skin-tone", "heuristic"):
        from dvphoto.detection.skin import SkinToneFaceLocator

        return SkinToneFaceLocator()
    if key == "mediapipe":
        # Deferred: mediapipe is an optional extra and slow to import.
        from dvphoto.detection.mediapipe_locator import MediaPipeFaceLocator

        return MediaPipeFaceLocator()
    raise ValueError(f"Unknown face locator: {name!r} (expected 'skin' or 'mediapipe')")
