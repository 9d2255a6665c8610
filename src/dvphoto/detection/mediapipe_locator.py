"""Face locator backed by MediaPipe.

Face Detection supplies boxes and confidences; Face Mesh, run on the same
image, supplies landmarks for the attribute flags (eyes open, neutral mouth,
head roll).
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np

# MediaPipe for face detection and landmarks
import mediapipe as mp

from dvphoto.core.models import FaceRegion, ImageBuffer

logger = logging.getLogger(__name__)

# Face Mesh landmark indices
EAR_LEFT_IDX = [33, 160, 158, 133, 153, 144]
EAR_RIGHT_IDX = [362, 385, 387, 263, 373, 380]
NOSE_TIP_IDX = 1
FOREHEAD_IDX = 10
CHIN_IDX = 152
MOUTH_TOP_IDX = 13
MOUTH_BOTTOM_IDX = 14
MOUTH_LEFT_IDX = 61
MOUTH_RIGHT_IDX = 291
EYE_OUTER_RIGHT_IDX = 33
EYE_OUTER_LEFT_IDX = 263


def eye_aspect_ratio(pts: np.ndarray, idx: List[int]) -> float:
    p = pts[idx]
    horizontal = float(np.linalg.norm(p[0] - p[3]))
    if horizontal <= 0:
        return 0.0
    vertical = float(np.linalg.norm(p[1] - p[5]) + np.linalg.norm(p[2] - p[4]))
    return vertical / (2.0 * horizontal)


class MediaPipeFaceLocator:
    """
    Args:
      model_selection: 0 = short range (selfies), 1 = full range.
      min_detection_confidence: MediaPipe's own cut-off; the pipeline applies its
        configured threshold on top of this.
      max_roll_degrees: eye-line tilt beyond which the head angle is flagged.
      min_eye_aspect_ratio: below this an eye counts as closed.
      max_mouth_open_ratio: lip gap / face height above which the mouth is open.
      max_smile_lift_ratio: mouth-corner lift / face height above which it is a smile.
    """

    name = "mediapipe"

    def __init__(
        self,
        model_selection: int = 1,
        min_detection_confidence: float = 0.3,
        max_roll_degrees: float = 10.0,
        min_eye_aspect_ratio: float = 0.2,
        max_mouth_open_ratio: float = 0.05,
        max_smile_lift_ratio: float = 0.02,
    ):
        self.model_selection = model_selection
        self.min_detection_confidence = min_detection_confidence
        self.max_roll_degrees = max_roll_degrees
        self.min_eye_aspect_ratio = min_eye_aspect_ratio
        self.max_mouth_open_ratio = max_mouth_open_ratio
        self.max_smile_lift_ratio = max_smile_lift_ratio

    def detect(self, image: ImageBuffer) -> List[FaceRegion]:
        # MediaPipe expects an RGB numpy array
        rgb = np.ascontiguousarray(image.pixels)
        h, w = rgb.shape[:2]

        with mp.solutions.face_detection.FaceDetection(
            model_selection=self.model_selection,
            min_detection_confidence=self.min_detection_confidence,
        ) as face_detection:
            results = face_detection.process(rgb)

        if not results.detections:
            return []

        meshes = self._face_meshes(rgb, max_faces=len(results.detections))
        regions: List[FaceRegion] = []
        for det in results.detections:
            box = det.location_data.relative_bounding_box
            left = max(0.0, box.xmin * w)
            top = max(0.0, box.ymin * h)
            right = min(float(w), (box.xmin + box.width) * w)
            bottom = min(float(h), (box.ymin + box.height) * h)
            if right <= left or bottom <= top:
                continue
            score = float(det.score[0]) if det.score else 0.0

            mesh = self._match_mesh(meshes, left, top, right, bottom)
            attrs = self._attributes(mesh) if mesh is not None else {}
            regions.append(FaceRegion(left=left, top=top, right=right, bottom=bottom, confidence=score, **attrs))

        logger.debug("MediaPipe locator: %d detections, %d meshes", len(regions), len(meshes))
        return regions

    def _face_meshes(self, rgb: np.ndarray, max_faces: int) -> List[np.ndarray]:
        h, w = rgb.shape[:2]
        with mp.solutions.face_mesh.FaceMesh(
            static_image_mode=True,
            refine_landmarks=True,
            max_num_faces=max_faces,
            min_detection_confidence=0.5,
        ) as face_mesh:
            results = face_mesh.process(rgb)

        if not results.multi_face_landmarks:
            return []
        return [
            np.array([(pt.x * w, pt.y * h) for pt in face.landmark], dtype=np.float32)
            for face in results.multi_face_landmarks
        ]

    @staticmethod
    def _match_mesh(
        meshes: List[np.ndarray], left: float, top: float, right: float, bottom: float
    ) -> Optional[np.ndarray]:
        for pts in meshes:
            nx, ny = pts[NOSE_TIP_IDX]
            if left <= nx <= right and top <= ny <= bottom:
                return pts
        return None

    def _attributes(self, pts: np.ndarray) -> dict:
        face_h = float(np.linalg.norm(pts[CHIN_IDX] - pts[FOREHEAD_IDX]))
        if face_h <= 0:
            return {}

        ear = min(eye_aspect_ratio(pts, EAR_LEFT_IDX), eye_aspect_ratio(pts, EAR_RIGHT_IDX))

        gap = float(np.linalg.norm(pts[MOUTH_TOP_IDX] - pts[MOUTH_BOTTOM_IDX])) / face_h
        lip_center_y = (pts[MOUTH_TOP_IDX][1] + pts[MOUTH_BOTTOM_IDX][1]) / 2.0
        corners_y = (pts[MOUTH_LEFT_IDX][1] + pts[MOUTH_RIGHT_IDX][1]) / 2.0
        lift = float(lip_center_y - corners_y) / face_h  # corners above the lips => smile

        dx, dy = pts[EYE_OUTER_LEFT_IDX] - pts[EYE_OUTER_RIGHT_IDX]
        roll = math.degrees(math.atan2(float(dy), float(dx)))

        return {
            "eyes_open": ear >= self.min_eye_aspect_ratio,
            "expression_neutral": gap <= self.max_mouth_open_ratio and lift <= self.max_smile_lift_ratio,
            "head_angle_acceptable": abs(roll) <= self.max_roll_degrees,
        }
