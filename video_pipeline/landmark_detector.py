"""
Landmark-based face detection using MediaPipe Face Detection.

Features extracted per face:
1. Bounding box (normalized)
2. Detection score
3. Six keypoints (eyes, nose tip, mouth centre, ear tragions)

Engineering decisions:
- MediaPipe short-range model: tuned for faces within ~2 m of a webcam
- Model loading is deferred to ``initialize()`` because it can take seconds
  (and can fail outright); the selector runs it on a background thread
- Only the geometry is used; no identity or expression classification
"""

import logging
import warnings
from typing import Dict, List, Optional

import numpy as np

from utils.config_loader import get_nested_config
from utils.errors import DetectorInitError
from .observation import (
    CENTERED_TOLERANCE,
    DISTANCE_SIZE_MAX,
    DISTANCE_SIZE_MIN,
    FaceObservation,
    observation_from_bbox,
    validate_frame,
)

logger = logging.getLogger(__name__)

# Suppress MediaPipe warnings
warnings.filterwarnings('ignore', category=UserWarning, module='google.protobuf')

MODEL_SELECTION = 0
MIN_DETECTION_CONFIDENCE = 0.5


class LandmarkDetector:
    """
    Higher-fidelity detector backed by MediaPipe.

    Usage:
        detector = LandmarkDetector()
        detector.initialize()          # slow; may raise DetectorInitError
        observations = detector.detect(rgb_frame)
        detector.close()
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Args:
            config: Optional configuration dict. Reads ``detection.landmark.*``,
                    ``detection.centered_tolerance`` and ``detection.distance_size_*``.
        """
        self.model_selection = get_nested_config(
            config, 'detection.landmark.model_selection', MODEL_SELECTION
        )
        self.min_detection_confidence = get_nested_config(
            config, 'detection.landmark.min_detection_confidence', MIN_DETECTION_CONFIDENCE
        )
        self.centered_tolerance = get_nested_config(
            config, 'detection.centered_tolerance', CENTERED_TOLERANCE
        )
        self.size_min = get_nested_config(config, 'detection.distance_size_min', DISTANCE_SIZE_MIN)
        self.size_max = get_nested_config(config, 'detection.distance_size_max', DISTANCE_SIZE_MAX)

        self._face_detection = None

    @property
    def ready(self) -> bool:
        return self._face_detection is not None

    def initialize(self) -> None:
        """
        Load the MediaPipe model.

        Raises:
            DetectorInitError: If MediaPipe is missing or the model fails to load
        """
        if self._face_detection is not None:
            return

        try:
            import mediapipe as mp

            self._face_detection = mp.solutions.face_detection.FaceDetection(
                model_selection=self.model_selection,
                min_detection_confidence=self.min_detection_confidence
            )
        except Exception as e:
            raise DetectorInitError(f"MediaPipe face detection unavailable: {e}") from e

        logger.info(
            f"Landmark detector initialized (MediaPipe Face Detection, "
            f"model={self.model_selection}, min_conf={self.min_detection_confidence})"
        )

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        """
        Detect faces in one RGB frame.

        Args:
            frame: RGB frame (H, W, 3)

        Returns:
            One observation per detected face (empty list if none)

        Raises:
            InvalidBufferError: If the frame is empty or malformed
            RuntimeError: If called before initialize()
        """
        if self._face_detection is None:
            raise RuntimeError("LandmarkDetector.detect() called before initialize()")

        rgb = np.ascontiguousarray(validate_frame(frame), dtype=np.uint8)
        results = self._face_detection.process(rgb)

        if not results.detections:
            return []

        observations = []
        for detection in results.detections:
            location = detection.location_data
            bbox = location.relative_bounding_box
            keypoints = tuple((float(kp.x), float(kp.y)) for kp in location.relative_keypoints)

            observations.append(observation_from_bbox(
                bbox.xmin,
                bbox.ymin,
                bbox.width,
                bbox.height,
                confidence=detection.score[0] if detection.score else 0.0,
                landmarks=keypoints,
                centered_tolerance=self.centered_tolerance,
                size_min=self.size_min,
                size_max=self.size_max
            ))

        logger.debug(f"Landmark detector found {len(observations)} face(s)")

        return observations

    def close(self):
        """Release resources."""
        if self._face_detection is not None:
            self._face_detection.close()
            self._face_detection = None
