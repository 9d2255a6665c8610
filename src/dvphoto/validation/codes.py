from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class FindingKind(str, Enum):
    DIMENSION = "dimension"
    FILE_SIZE = "fileSize"
    FORMAT = "format"
    FACE = "face"
    BACKGROUND = "background"
    LIGHTING = "lighting"
    QUALITY = "quality"
    EXPRESSION = "expression"
    POSITION = "position"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class CodeInfo:
    kind: FindingKind
    category: str
    message: str
    suggestion: str


CATALOG: Dict[str, CodeInfo] = {
    "invalid_dimensions": CodeInfo(
        FindingKind.DIMENSION,
        "dimensions",
        "Photo must be exactly {target_width}x{target_height} pixels.",
        "Use the enhancer or re-export the photo at the required size.",
    ),
    "file_too_large": CodeInfo(
        FindingKind.FILE_SIZE,
        "file_size",
        "File size must be at most {max_file_size_kb:g}KB.",
        "Save the photo with slightly lower JPEG quality.",
    ),
    "file_too_small": CodeInfo(
        FindingKind.FILE_SIZE,
        "file_size",
        "File size must be at least {min_file_size_kb:g}KB.",
        "Save the photo with higher JPEG quality; heavy compression loses detail.",
    ),
    "wrong_format": CodeInfo(
        FindingKind.FORMAT,
        "file_size",
        "Photo must be in JPEG format (.jpg or .jpeg).",
        "Save the photo as a JPEG file.",
    ),
    "no_face_detected": CodeInfo(
        FindingKind.FACE,
        "face_detection",
        "No face detected in the photo.",
        "Make sure your face is well lit, clearly visible and facing the camera.",
    ),
    "multiple_faces": CodeInfo(
        FindingKind.FACE,
        "face_detection",
        "Only one face should be visible.",
        "Make sure nobody else is in the frame.",
    ),
    "low_face_confidence": CodeInfo(
        FindingKind.FACE,
        "face_detection",
        "The face could only be detected with low confidence.",
        "Use even lighting and keep your face clearly visible.",
    ),
    "face_too_small": CodeInfo(
        FindingKind.FACE,
        "face_detection",
        "Face is too small (must be {min_face_ratio:.0%}-{max_face_ratio:.0%} of the photo).",
        "Move closer to the camera.",
    ),
    "face_too_large": CodeInfo(
        FindingKind.FACE,
        "face_detection",
        "Face is too large (must be {min_face_ratio:.0%}-{max_face_ratio:.0%} of the photo).",
        "Move back so your whole head and the top of your shoulders are visible.",
    ),
    "face_off_center": CodeInfo(
        FindingKind.POSITION,
        "face_detection",
        "Face is not centered in the photo.",
        "Center your face in the frame.",
    ),
    "face_far_off_center": CodeInfo(
        FindingKind.POSITION,
        "face_detection",
        "Face is far from the center of the photo.",
        "Center your face in the frame and retake the photo.",
    ),
    "head_tilted": CodeInfo(
        FindingKind.POSITION,
        "face_detection",
        "Keep head straight and level.",
        "Look directly at the camera without tilting your head.",
    ),
    "eyes_closed": CodeInfo(
        FindingKind.EXPRESSION,
        "face_detection",
        "Both eyes must be open and visible.",
        "Keep both eyes open and look at the camera.",
    ),
    "expression_not_neutral": CodeInfo(
        FindingKind.EXPRESSION,
        "face_detection",
        "Maintain a neutral expression.",
        "Keep a natural expression with your mouth closed; do not smile.",
    ),
    "glasses_detected": CodeInfo(
        FindingKind.FACE,
        "face_detection",
        "Remove glasses unless medically required.",
        "Take off your glasses before taking the photo.",
    ),
    "image_too_dark": CodeInfo(
        FindingKind.LIGHTING,
        "lighting",
        "Image is too dark.",
        "Use brighter, even lighting or face a light source.",
    ),
    "image_too_bright": CodeInfo(
        FindingKind.LIGHTING,
        "lighting",
        "Image is too bright or overexposed.",
        "Avoid direct sunlight and very bright lamps.",
    ),
    "low_contrast": CodeInfo(
        FindingKind.LIGHTING,
        "lighting",
        "Image has very low contrast.",
        "Use lighting that shows the features of your face clearly; avoid haze and flat, washed-out light.",
    ),
    "unbalanced_lighting": CodeInfo(
        FindingKind.LIGHTING,
        "lighting",
        "Lighting on the face is not balanced.",
        "Face the light source directly so both sides of your face are equally lit.",
    ),
    "image_blurry": CodeInfo(
        FindingKind.QUALITY,
        "lighting",
        "Image appears blurry.",
        "Hold the camera steady and make sure your face is in focus.",
    ),
    "shadows_detected": CodeInfo(
        FindingKind.LIGHTING,
        "shadows",
        "Shadows detected on the face or background.",
        "Use diffused lighting and step away from the wall to avoid shadows.",
    ),
    "background_not_plain": CodeInfo(
        FindingKind.BACKGROUND,
        "background",
        "Background must be plain white or off-white.",
        "Stand in front of a plain white or light-colored wall.",
    ),
    "complex_background": CodeInfo(
        FindingKind.BACKGROUND,
        "background",
        "Background is too complex or patterned.",
        "Use a plain backdrop without objects or patterns.",
    ),
}


def lookup(code: str) -> CodeInfo:
    try:
        return CATALOG[code]
    except KeyError:
        raise ValueError(f"Unknown finding code: {code!r}") from None
