"""
Normalized face observation shared by every detection strategy.

Both detectors reduce a frame to the same record, so posture, movement and
presence scoring never need to know which detector produced it.

Coordinate conventions:
- All geometry is frame-normalized (0-1 on each axis)
- Offsets are signed: face centre minus frame centre (positive = right/down)
- size_ratio is face width divided by frame width
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Protocol, Tuple

import numpy as np

from utils.errors import InvalidBufferError

logger = logging.getLogger(__name__)

CENTERED_TOLERANCE = 0.15
DISTANCE_SIZE_MIN = 0.15
DISTANCE_SIZE_MAX = 0.60


class DetectorKind(Enum):
    """Which strategy produced an observation."""
    HEURISTIC = "heuristic"
    LANDMARK = "landmark"


@dataclass(frozen=True)
class FaceObservation:
    """
    Presence and position of the primary face in one frame.

    Attributes:
        present: A face was found
        centered: Face centre within tolerance of the frame centre
        distance_ok: Face size (or heuristic proxy) indicates a suitable distance
        size_ratio: Face width / frame width
        horizontal_offset: Face centre x - 0.5
        vertical_offset: Face centre y - 0.5
        confidence: Detection confidence (0-1)
        bbox: (xmin, ymin, width, height), normalized, if known
        landmarks: Normalized (x, y) keypoints, if known
    """
    present: bool
    centered: bool
    distance_ok: bool
    size_ratio: float
    horizontal_offset: float
    vertical_offset: float
    confidence: float
    bbox: Optional[Tuple[float, float, float, float]] = None
    landmarks: Tuple[Tuple[float, float], ...] = ()

    @property
    def center(self) -> Tuple[float, float]:
        """Face centre in normalized frame coordinates."""
        return (0.5 + self.horizontal_offset, 0.5 + self.vertical_offset)

    @classmethod
    def absent(cls) -> 'FaceObservation':
        return cls(
            present=False,
            centered=False,
            distance_ok=False,
            size_ratio=0.0,
            horizontal_offset=0.0,
            vertical_offset=0.0,
            confidence=0.0
        )


class FaceDetector(Protocol):
    """
    Anything that turns an RGB frame into face observations.

    The heuristic and landmark detectors satisfy this structurally; neither
    derives from the other.
    """

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        ...


def validate_frame(frame: Any) -> np.ndarray:
    """
    Check that ``frame`` is a usable RGB image and return its first 3 channels.

    Raises:
        InvalidBufferError: If the frame is missing, empty or not (H, W, >=3)
    """
    if frame is None:
        raise InvalidBufferError("No frame")

    frame = np.asarray(frame)

    if frame.ndim != 3 or frame.shape[2] < 3:
        raise InvalidBufferError(f"Expected (H, W, 3) frame, got shape {frame.shape}")

    if frame.shape[0] == 0 or frame.shape[1] == 0:
        raise InvalidBufferError("Empty frame")

    return frame[:, :, :3]


def observation_from_bbox(
    xmin: float,
    ymin: float,
    width: float,
    height: float,
    confidence: float,
    landmarks: Tuple[Tuple[float, float], ...] = (),
    centered_tolerance: float = CENTERED_TOLERANCE,
    size_min: float = DISTANCE_SIZE_MIN,
    size_max: float = DISTANCE_SIZE_MAX
) -> FaceObservation:
    """
    Build an observation from a normalized bounding box.

    Args:
        xmin, ymin, width, height: Normalized bounding box
        confidence: Detector score (clipped to 0-1)
        landmarks: Normalized keypoints
        centered_tolerance: Max |offset| on both axes to count as centered
        size_min, size_max: Face width ratio range for a suitable distance

    Returns:
        FaceObservation with present=True
    """
    horizontal_offset = (xmin + width / 2.0) - 0.5
    vertical_offset = (ymin + height / 2.0) - 0.5
    size_ratio = max(0.0, float(width))

    return FaceObservation(
        present=True,
        centered=abs(horizontal_offset) <= centered_tolerance and abs(vertical_offset) <= centered_tolerance,
        distance_ok=size_min <= size_ratio <= size_max,
        size_ratio=size_ratio,
        horizontal_offset=float(horizontal_offset),
        vertical_offset=float(vertical_offset),
        confidence=float(np.clip(confidence, 0.0, 1.0)),
        bbox=(float(xmin), float(ymin), float(width), float(height)),
        landmarks=tuple(landmarks)
    )


def primary_observation(observations: List[FaceObservation]) -> FaceObservation:
    """Most confident present face, or ``FaceObservation.absent()``."""
    present = [obs for obs in observations or [] if obs.present]
    if not present:
        return FaceObservation.absent()
    return max(present, key=lambda obs: obs.confidence)
