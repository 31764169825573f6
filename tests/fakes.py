"""
Stand-ins for hardware and detectors used across the test modules.
"""

import threading
from typing import List, Optional

import numpy as np

from audio_pipeline.audio_quality import AudioBuffer
from utils.errors import DetectorInitError
from video_pipeline.observation import FaceObservation, observation_from_bbox

SKIN_RGB = (200, 140, 110)
BACKGROUND_RGB = (60, 70, 90)


def make_face_frame(
    width: int = 160,
    height: int = 120,
    center: tuple = (0.5, 0.4),
    face_size: float = 0.2,
    background=BACKGROUND_RGB,
    skin=SKIN_RGB
) -> np.ndarray:
    """Synthetic RGB frame with a skin-coloured square standing in for a face."""
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[:, :] = background

    half_w = int(face_size * width / 2)
    half_h = int(face_size * height / 2)
    cx, cy = int(center[0] * width), int(center[1] * height)
    frame[max(0, cy - half_h):cy + half_h, max(0, cx - half_w):cx + half_w] = skin
    return frame


def make_tone(frequency: float = 1000.0, amplitude: float = 0.1, seconds: float = 1.0,
              sample_rate: int = 16000) -> AudioBuffer:
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    return AudioBuffer(samples=(amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32),
                       sample_rate=sample_rate)


def good_observation(confidence: float = 0.9) -> FaceObservation:
    """Centered face at a good distance."""
    return observation_from_bbox(0.4, 0.35, 0.25, 0.3, confidence)


class FakeCapturePort:
    """
    Capture port that counts hardware opens and serves canned data.

    ``open_error`` (an AcquisitionError instance) is raised by the next open().
    """

    def __init__(self, frame: Optional[np.ndarray] = None, audio: Optional[AudioBuffer] = None):
        self.frame = frame if frame is not None else make_face_frame()
        self.audio = audio if audio is not None else make_tone()
        self.open_calls = 0
        self.close_calls = 0
        self.open_error = None
        self.handle = None

    def open(self):
        self.open_calls += 1
        if self.open_error is not None:
            error, self.open_error = self.open_error, None
            raise error
        self.handle = object()
        return self.handle

    def pull_frame(self, handle):
        assert handle is self.handle
        return self.frame

    def pull_audio(self, handle):
        return self.audio

    def close(self, handle):
        self.close_calls += 1


class FakeLease:
    """Minimal capture lease for driving a sampler without a manager."""

    def __init__(self, frame=None, audio=None):
        self.frame = frame if frame is not None else make_face_frame()
        self.audio = audio if audio is not None else make_tone()
        self.active = True
        self.release_calls = 0
        self.pull_hook = None

    def pull_frame(self):
        if self.pull_hook is not None:
            self.pull_hook()
        return self.frame

    def pull_audio(self):
        return self.audio

    def release(self):
        self.release_calls += 1
        was_active = self.active
        self.active = False
        return was_active


class FakeLandmarkDetector:
    """Landmark detector whose initialization the test controls."""

    def __init__(self, observation: Optional[FaceObservation] = None, fail: bool = False,
                 gate: Optional[threading.Event] = None):
        self.observation = observation or good_observation()
        self.fail = fail
        self.gate = gate
        self.init_calls = 0
        self.detect_calls = 0
        self.closed = False

    def initialize(self):
        self.init_calls += 1
        if self.gate is not None:
            self.gate.wait(5.0)
        if self.fail:
            raise DetectorInitError("model could not be loaded")

    def detect(self, frame) -> List[FaceObservation]:
        self.detect_calls += 1
        return [self.observation]

    def close(self):
        self.closed = True


class FailingDetector:
    def detect(self, frame):
        raise RuntimeError("inference crashed")
