"""
Pixel-statistics face detection that needs no trained model.

Method:
1. Classify skin pixels with a fixed RGB rule inside a central region
   (where a webcam user's face normally sits)
2. Presence = skin ratio above a threshold
3. Position = centroid of the skin pixels
4. Size = robust horizontal extent of the skin pixels
5. Distance proxy = mean brightness in the region (too dark or washed out
   usually means too far from, or too close to, the camera/light)

Engineering decisions:
- Vectorized numpy only: runs in a few milliseconds on a 640x480 frame
- Always available, so it is the fallback for every tick
- Confidence is capped well below what the landmark detector reports, so
  posture never earns the landmark confidence bonus from a heuristic guess
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from utils.config_loader import get_nested_config
from .observation import (
    CENTERED_TOLERANCE,
    FaceObservation,
    validate_frame,
)

logger = logging.getLogger(__name__)

# Central region searched for a face (fractions of width / height)
REGION_X = (0.3, 0.7)
REGION_Y = (0.2, 0.6)

PRESENCE_SKIN_RATIO = 0.10
CONFIDENCE_CAP = 0.5
# Skin ratio at which confidence reaches the cap
CONFIDENCE_FULL_RATIO = 0.3
BRIGHTNESS_MIN = 50.0
BRIGHTNESS_MAX = 200.0


def skin_mask(rgb: np.ndarray) -> np.ndarray:
    """
    Boolean mask of skin-coloured pixels.

    Rule: R>95, G>40, B>20, max-min>15, |R-G|>15, R>G, R>B
    """
    pixels = rgb.astype(np.int16)
    r = pixels[:, :, 0]
    g = pixels[:, :, 1]
    b = pixels[:, :, 2]

    spread = pixels.max(axis=2) - pixels.min(axis=2)

    return (
        (r > 95) & (g > 40) & (b > 20) &
        (spread > 15) &
        (np.abs(r - g) > 15) &
        (r > g) & (r > b)
    )


class HeuristicDetector:
    """
    Cheap skin-tone/brightness face estimator.

    Usage:
        detector = HeuristicDetector()
        observations = detector.detect(rgb_frame)
    """

    def __init__(self, config: Optional[Dict] = None):
        self.presence_skin_ratio = get_nested_config(
            config, 'detection.heuristic.presence_skin_ratio', PRESENCE_SKIN_RATIO
        )
        self.confidence_cap = get_nested_config(
            config, 'detection.heuristic.confidence_cap', CONFIDENCE_CAP
        )
        self.brightness_min = get_nested_config(
            config, 'detection.heuristic.brightness_min', BRIGHTNESS_MIN
        )
        self.brightness_max = get_nested_config(
            config, 'detection.heuristic.brightness_max', BRIGHTNESS_MAX
        )
        self.centered_tolerance = get_nested_config(
            config, 'detection.centered_tolerance', CENTERED_TOLERANCE
        )

    def detect(self, frame: np.ndarray) -> List[FaceObservation]:
        """
        Estimate the primary face from pixel statistics.

        Args:
            frame: RGB frame (H, W, 3)

        Returns:
            Single-element list (the observation may be absent)

        Raises:
            InvalidBufferError: If the frame is empty or malformed
        """
        rgb = validate_frame(frame)
        h, w = rgb.shape[:2]

        x0, x1 = int(w * REGION_X[0]), max(int(w * REGION_X[1]), int(w * REGION_X[0]) + 1)
        y0, y1 = int(h * REGION_Y[0]), max(int(h * REGION_Y[1]), int(h * REGION_Y[0]) + 1)
        region = rgb[y0:y1, x0:x1]

        mask = skin_mask(region)
        skin_ratio = float(mask.mean()) if mask.size else 0.0
        brightness = float(region.mean()) if region.size else 0.0

        logger.debug(f"Heuristic: skin_ratio={skin_ratio:.3f}, brightness={brightness:.1f}")

        if skin_ratio <= self.presence_skin_ratio:
            return [FaceObservation.absent()]

        ys, xs = np.nonzero(mask)
        cx = (x0 + xs.mean()) / w
        cy = (y0 + ys.mean()) / h
        horizontal_offset = float(cx - 0.5)
        vertical_offset = float(cy - 0.5)

        x_lo, x_hi = np.percentile(xs, [5, 95])
        size_ratio = float((x_hi - x_lo + 1) / w)

        confidence = self.confidence_cap * min(1.0, skin_ratio / CONFIDENCE_FULL_RATIO)

        return [FaceObservation(
            present=True,
            centered=(
                abs(horizontal_offset) <= self.centered_tolerance and
                abs(vertical_offset) <= self.centered_tolerance
            ),
            distance_ok=self.brightness_min < brightness < self.brightness_max,
            size_ratio=size_ratio,
            horizontal_offset=horizontal_offset,
            vertical_offset=vertical_offset,
            confidence=float(confidence)
        )]
