"""
Time-indexed frame access for replaying recorded interviews.

Engineering decisions:
- OpenCV decodes the container; frames come back as RGB, the layout the
  detectors expect
- The sampler asks for "the frame at t seconds" with t increasing, so a
  request just ahead of the last decoded frame is served by grabbing forward
  instead of seeking (seeking re-decodes from the previous keyframe)
"""

import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Grab forward instead of seeking when the target is at most this many frames ahead
MAX_FORWARD_GRAB = 30


class VideoReader:
    """
    Recorded video addressed by media time.

    Usage:
        with VideoReader('interview.mp4') as video:
            frame = video.frame_at(12.5)    # RGB, or None past the end
    """

    def __init__(self, video_path, color_mode: str = 'RGB'):
        """
        Args:
            video_path: Recording to open (str or Path)
            color_mode: 'RGB' (default) or 'BGR' to keep OpenCV's native order

        Raises:
            FileNotFoundError: No such file
            RuntimeError: OpenCV cannot decode it
        """
        self.path = Path(video_path)
        self.color_mode = color_mode

        if not self.path.exists():
            raise FileNotFoundError(f"Recording not found: {self.path}")

        capture = cv2.VideoCapture(str(self.path))
        if not capture.isOpened():
            capture.release()
            raise RuntimeError(f"OpenCV could not decode {self.path}")

        self._capture: Optional[cv2.VideoCapture] = capture
        self._position = 0    # index of the next frame read() would return

        self.fps = capture.get(cv2.CAP_PROP_FPS) or 0.0
        self.frame_count = max(0, int(capture.get(cv2.CAP_PROP_FRAME_COUNT)))
        self.size = (
            int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        )
        self.duration = self.frame_count / self.fps if self.fps > 0 else 0.0

        logger.info(
            f"Replay source {self.path.name}: {self.duration:.1f}s at {self.fps:.2f} FPS "
            f"({self.frame_count} frames, {self.size[0]}x{self.size[1]})"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    @property
    def closed(self) -> bool:
        return self._capture is None

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None

    def _move_to(self, index: int):
        ahead = index - self._position
        if 0 <= ahead <= MAX_FORWARD_GRAB:
            for _ in range(ahead):
                self._capture.grab()
        else:
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, index)
        self._position = index

    def read_frame(self, index: int) -> Optional[np.ndarray]:
        """
        Decode frame ``index``.

        Returns:
            (H, W, 3) array, or None when out of range, closed or undecodable
        """
        if self._capture is None or not 0 <= index < self.frame_count:
            return None

        self._move_to(index)
        ok, frame = self._capture.read()
        if not ok:
            logger.warning(f"Frame {index} of {self.path.name} could not be decoded")
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, index + 1)
            self._position = index + 1
            return None
        self._position = index + 1

        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB) if self.color_mode == 'RGB' else frame

    def frame_at(self, seconds: float) -> Optional[np.ndarray]:
        """Frame on screen ``seconds`` into the recording, or None past the end."""
        if self.fps <= 0 or seconds < 0:
            return None
        return self.read_frame(int(seconds * self.fps))
