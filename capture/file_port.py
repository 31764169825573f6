"""
Replay a recorded interview through the capture port contract.

The playhead is the sampler clock: ``pull_frame`` returns the frame shown at
(clock - open time) seconds and ``pull_audio`` the audio window ending there.
Driven by a ManualClock, a one-hour recording is analyzed without waiting an
hour.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

import numpy as np

from audio_pipeline.audio_quality import AudioBuffer
from utils.audio_io import extract_audio_from_video
from utils.config_loader import get_nested_config
from utils.errors import DeviceUnavailableError, InvalidBufferError
from utils.video_io import VideoReader

logger = logging.getLogger(__name__)

AUDIO_SAMPLE_RATE = 16000
AUDIO_WINDOW_SEC = 1.0


@dataclass
class ReplayHandle:
    reader: VideoReader
    audio: np.ndarray
    sample_rate: int
    opened_at: float


class VideoFileCapturePort:
    """
    Capture port backed by a video file.

    Usage:
        clock = ManualClock()
        port = VideoFileCapturePort('interview.mp4', clock)
    """

    def __init__(self, video_path, clock: Callable[[], float], config: Optional[Dict] = None):
        self.video_path = Path(video_path)
        self.clock = clock
        self.sample_rate = int(get_nested_config(config, 'capture.audio_sample_rate', AUDIO_SAMPLE_RATE))
        self.audio_window_sec = float(get_nested_config(config, 'capture.audio_window_sec', AUDIO_WINDOW_SEC))
        self.duration = 0.0

    def open(self) -> ReplayHandle:
        """
        Open the video and load its soundtrack.

        Raises:
            DeviceUnavailableError: If the file is missing or unreadable
        """
        try:
            reader = VideoReader(self.video_path, color_mode='RGB')
        except (FileNotFoundError, RuntimeError) as e:
            raise DeviceUnavailableError(str(e)) from e

        try:
            audio, sr = extract_audio_from_video(self.video_path, sample_rate=self.sample_rate)
        except (RuntimeError, OSError) as e:
            logger.warning(f"No usable soundtrack in {self.video_path.name}, audio will score neutral: {e}")
            audio, sr = np.zeros(0, dtype=np.float32), self.sample_rate

        self.duration = reader.duration

        return ReplayHandle(reader=reader, audio=audio, sample_rate=sr, opened_at=self.clock())

    def _position(self, handle: ReplayHandle) -> float:
        return self.clock() - handle.opened_at

    def pull_frame(self, handle: ReplayHandle) -> np.ndarray:
        position = self._position(handle)
        frame = handle.reader.frame_at(position)
        if frame is None:
            raise InvalidBufferError(f"No frame at {position:.2f}s of {self.video_path.name}")
        return frame

    def pull_audio(self, handle: ReplayHandle) -> AudioBuffer:
        end = int(self._position(handle) * handle.sample_rate)
        start = max(0, end - int(self.audio_window_sec * handle.sample_rate))
        return AudioBuffer(samples=handle.audio[start:end], sample_rate=handle.sample_rate)

    def close(self, handle: ReplayHandle) -> None:
        handle.reader.release()
