"""
Run-time choice between heuristic and landmark detection.

Policy:
- The heuristic detector serves every tick until the landmark detector is ready
- Landmark initialization is attempted once, on a background thread
- A failed initialization is logged once and the heuristic is kept for the
  rest of the session; ``restart()`` is the only way to try again
- The switch is a single reference assignment read once per detection, so a
  tick already in progress finishes with the detector it started with
"""

import logging
import threading
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from utils.errors import DetectorInitError, InvalidBufferError, SampleProcessingError
from .observation import DetectorKind, FaceObservation, primary_observation

logger = logging.getLogger(__name__)


class DetectorStatus(Enum):
    """Lifecycle of the landmark detector."""
    UNAVAILABLE = "unavailable"      # no landmark detector configured
    PENDING = "pending"              # configured, init not started
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class DetectorSelector:
    """
    Serves detections from whichever strategy is currently active.

    Usage:
        selector = DetectorSelector(HeuristicDetector(), LandmarkDetector())
        selector.start_background_init()
        observation, kind = selector.detect(frame)
    """

    def __init__(self, heuristic, landmark=None):
        """
        Args:
            heuristic: Always-available detector (``detect(frame)``)
            landmark: Optional detector with ``initialize()`` and ``detect(frame)``
        """
        self._heuristic = heuristic
        self._landmark = landmark
        self._lock = threading.Lock()
        self._active: Tuple[object, DetectorKind] = (heuristic, DetectorKind.HEURISTIC)
        self._status = DetectorStatus.PENDING if landmark is not None else DetectorStatus.UNAVAILABLE
        self._init_thread: Optional[threading.Thread] = None
        self._settled = threading.Event()
        if landmark is None:
            self._settled.set()

    @property
    def status(self) -> DetectorStatus:
        return self._status

    @property
    def active_kind(self) -> DetectorKind:
        return self._active[1]

    def start_background_init(self) -> bool:
        """
        Start landmark initialization on a daemon thread.

        Returns:
            True if an initialization attempt was started
        """
        with self._lock:
            if self._status is not DetectorStatus.PENDING:
                return False
            self._status = DetectorStatus.INITIALIZING
            self._settled.clear()
            self._init_thread = threading.Thread(
                target=self._initialize_landmark,
                name="landmark-detector-init",
                daemon=True
            )
            self._init_thread.start()

        logger.info("Landmark detector initialization started in background")
        return True

    def wait_until_settled(self, timeout: Optional[float] = None) -> bool:
        """Block until initialization has succeeded or failed."""
        return self._settled.wait(timeout)

    def restart(self) -> bool:
        """
        Fall back to the heuristic and re-attempt landmark initialization.

        Called when the caller explicitly restarts a session.
        """
        with self._lock:
            if self._landmark is None or self._status is DetectorStatus.INITIALIZING:
                return False
            self._active = (self._heuristic, DetectorKind.HEURISTIC)
            self._status = DetectorStatus.PENDING
        return self.start_background_init()

    def _initialize_landmark(self):
        try:
            self._landmark.initialize()
        except DetectorInitError as e:
            self._mark_failed(e)
        except Exception as e:
            self._mark_failed(DetectorInitError(str(e)))
        else:
            with self._lock:
                self._active = (self._landmark, DetectorKind.LANDMARK)
                self._status = DetectorStatus.READY
            logger.info("Landmark detector ready; subsequent ticks use it")
        finally:
            self._settled.set()

    def _mark_failed(self, error: DetectorInitError):
        with self._lock:
            self._status = DetectorStatus.FAILED
        logger.warning(f"Landmark detector initialization failed, using heuristic detection: {error}")

    def detect(self, frame: np.ndarray) -> Tuple[FaceObservation, DetectorKind]:
        """
        Run the active detector and reduce its output to the primary face.

        Returns:
            (observation, kind of detector that produced it)

        Raises:
            InvalidBufferError: If the frame is empty or malformed
            SampleProcessingError: If the detector itself fails
        """
        detector, kind = self._active

        try:
            observations = detector.detect(frame)
        except InvalidBufferError:
            raise
        except Exception as e:
            raise SampleProcessingError(f"{kind.value} detection failed: {e}") from e

        return primary_observation(observations), kind

    def close(self):
        """Release the landmark detector, if it has one."""
        if self._landmark is not None and hasattr(self._landmark, 'close'):
            self._landmark.close()
