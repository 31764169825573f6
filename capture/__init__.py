"""
Capture device ownership.

Port implementations live in ``capture.ports`` (camera + microphone) and
``capture.file_port`` (recorded video); import them directly so that a
machine without PortAudio can still replay files.
"""

from .media_session import CaptureLease, CaptureState, MediaSessionManager

__all__ = [
    'CaptureLease',
    'CaptureState',
    'MediaSessionManager',
]
