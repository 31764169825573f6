"""
Movement (fidgeting) analysis over recent face positions.

Method:
- Keep the last K face centres of the current question (ring buffer)
- Head movement = mean displacement between consecutive centres,
  in frame-normalized units
- Fidgeting = head movement scaled to 0-10
- Stability = 10 - fidgeting; the movement score is the stability

Frames without a face are not recorded: a missing face says nothing about
how much the person moved.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from scoring.weights import SCORE_MAX, clamp_score
from utils.config_loader import get_nested_config
from .observation import FaceObservation

logger = logging.getLogger(__name__)

BUFFER_SIZE = 10
FIDGET_SCALE = 50.0


@dataclass(frozen=True)
class MovementMetrics:
    """
    Movement state after one observation.

    Attributes:
        stability: 10 - fidgeting_level (0-10)
        fidgeting_level: Scaled mean displacement (0-10)
        head_movement: Mean displacement between consecutive centres (frame units)
        movement_score: Equal to stability
    """
    stability: float
    fidgeting_level: float
    head_movement: float
    movement_score: float

    @classmethod
    def neutral(cls) -> 'MovementMetrics':
        return cls(stability=SCORE_MAX, fidgeting_level=0.0, head_movement=0.0, movement_score=SCORE_MAX)


class MovementAnalyzer:
    """
    Per-question ring buffer of face positions.

    Usage:
        analyzer = MovementAnalyzer()
        metrics = analyzer.update(observation)
        analyzer.reset()   # new question
    """

    def __init__(self, config: Optional[Dict] = None):
        self.buffer_size = int(get_nested_config(config, 'movement.buffer_size', BUFFER_SIZE))
        self.fidget_scale = float(get_nested_config(config, 'movement.fidget_scale', FIDGET_SCALE))

        if self.buffer_size < 2:
            raise ValueError(f"movement.buffer_size must be >= 2, got {self.buffer_size}")

        self._positions = deque(maxlen=self.buffer_size)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._positions)

    def reset(self):
        """Forget all positions (called when the question changes)."""
        with self._lock:
            self._positions.clear()

    def update(self, observation: FaceObservation) -> MovementMetrics:
        """
        Record an observation and return the current movement metrics.

        Args:
            observation: Face observation of the current tick

        Returns:
            MovementMetrics (neutral while fewer than 2 positions are known)
        """
        with self._lock:
            if observation.present:
                self._positions.append(observation.center)
            positions = np.array(self._positions, dtype=float)

        if len(positions) < 2:
            return MovementMetrics.neutral()

        displacement = float(np.mean(np.linalg.norm(np.diff(positions, axis=0), axis=1)))
        fidgeting = clamp_score(displacement * self.fidget_scale)
        stability = clamp_score(SCORE_MAX - fidgeting)

        logger.debug(
            f"Movement: displacement={displacement:.4f} over {len(positions)} positions, "
            f"fidgeting={fidgeting:.2f}"
        )

        return MovementMetrics(
            stability=stability,
            fidgeting_level=fidgeting,
            head_movement=displacement,
            movement_score=stability
        )
