"""
Capture ports: where frames and audio come from.

The engine only sees the port contract:
    open() -> handle                (raises AcquisitionError)
    pull_frame(handle) -> RGB frame (raises InvalidBufferError)
    pull_audio(handle) -> AudioBuffer
    close(handle)

CameraCapturePort backs it with a webcam (OpenCV) and a microphone
(sounddevice). Microphone blocks arrive on PortAudio's callback thread and
are kept in a short ring buffer; each pull returns the most recent window.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional, Protocol

import cv2
import numpy as np
import sounddevice as sd

from audio_pipeline.audio_quality import AudioBuffer
from utils.config_loader import get_nested_config
from utils.errors import (
    AcquisitionError,
    DeviceBusyError,
    DeviceUnavailableError,
    InvalidBufferError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)

CAMERA_INDEX = 0
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
AUDIO_SAMPLE_RATE = 16000
AUDIO_WINDOW_SEC = 1.0
AUDIO_BLOCK_SEC = 0.1


class CapturePort(Protocol):
    def open(self) -> Any:
        ...

    def pull_frame(self, handle: Any) -> np.ndarray:
        ...

    def pull_audio(self, handle: Any) -> AudioBuffer:
        ...

    def close(self, handle: Any) -> None:
        ...


def classify_audio_error(error: Exception) -> AcquisitionError:
    """Map a PortAudio failure to the acquisition error taxonomy."""
    message = str(error).lower()

    if 'permission' in message or 'not allowed' in message or 'not authorized' in message:
        return PermissionDeniedError(f"Microphone access denied: {error}")
    if 'busy' in message or 'unanticipated host error' in message or 'device unavailable' in message:
        return DeviceBusyError(f"Microphone is in use: {error}")
    return DeviceUnavailableError(f"Microphone unavailable: {error}")


@dataclass
class CameraHandle:
    """Open camera + microphone stream."""
    video: Any
    audio_stream: Any
    sample_rate: int
    window_samples: int
    blocks: Deque[np.ndarray] = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock)


class CameraCapturePort:
    """
    Webcam + default microphone.

    Usage:
        manager = MediaSessionManager(CameraCapturePort(camera_index=0))
    """

    def __init__(self, config: Optional[Dict] = None, camera_index: Optional[int] = None):
        self.camera_index = camera_index if camera_index is not None else get_nested_config(
            config, 'capture.camera_index', CAMERA_INDEX
        )
        self.frame_width = get_nested_config(config, 'capture.frame_width', FRAME_WIDTH)
        self.frame_height = get_nested_config(config, 'capture.frame_height', FRAME_HEIGHT)
        self.sample_rate = int(get_nested_config(config, 'capture.audio_sample_rate', AUDIO_SAMPLE_RATE))
        self.audio_window_sec = float(get_nested_config(config, 'capture.audio_window_sec', AUDIO_WINDOW_SEC))

    def open(self) -> CameraHandle:
        """
        Open the camera and start the microphone stream.

        Raises:
            DeviceUnavailableError: No camera / microphone
            DeviceBusyError: Camera opened but delivers no frames
            PermissionDeniedError: Microphone access refused
        """
        video = cv2.VideoCapture(self.camera_index)
        if not video.isOpened():
            video.release()
            raise DeviceUnavailableError(f"Camera {self.camera_index} could not be opened")

        video.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        video.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)

        ok, _ = video.read()
        if not ok:
            video.release()
            raise DeviceBusyError(f"Camera {self.camera_index} opened but returned no frame")

        window_samples = int(self.sample_rate * self.audio_window_sec)
        block_size = max(1, int(self.sample_rate * AUDIO_BLOCK_SEC))
        handle = CameraHandle(
            video=video,
            audio_stream=None,
            sample_rate=self.sample_rate,
            window_samples=window_samples,
            blocks=deque(maxlen=max(1, window_samples // block_size + 1))
        )

        def _on_audio(indata, frames, time_info, status):
            if status:
                logger.debug(f"Microphone status: {status}")
            with handle.lock:
                handle.blocks.append(indata[:, 0].copy())

        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype='float32',
                blocksize=block_size,
                callback=_on_audio
            )
            stream.start()
        except (sd.PortAudioError, OSError) as e:
            video.release()
            raise classify_audio_error(e) from e

        handle.audio_stream = stream

        logger.info(
            f"Opened camera {self.camera_index} and microphone "
            f"({self.sample_rate} Hz, {self.audio_window_sec:.1f}s window)"
        )

        return handle

    def pull_frame(self, handle: CameraHandle) -> np.ndarray:
        ok, frame = handle.video.read()
        if not ok or frame is None:
            raise InvalidBufferError("Camera returned no frame")
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def pull_audio(self, handle: CameraHandle) -> AudioBuffer:
        with handle.lock:
            blocks = list(handle.blocks)

        if not blocks:
            return AudioBuffer.empty(handle.sample_rate)

        samples = np.concatenate(blocks)[-handle.window_samples:]
        return AudioBuffer(samples=samples, sample_rate=handle.sample_rate)

    def close(self, handle: CameraHandle) -> None:
        if handle.audio_stream is not None:
            handle.audio_stream.stop()
            handle.audio_stream.close()
            handle.audio_stream = None
        if handle.video is not None:
            handle.video.release()
            handle.video = None
