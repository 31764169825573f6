"""
Error taxonomy for the capture, sampling and aggregation engine.

Only acquisition errors reach the caller. Everything raised while a tick is
being processed is caught at the sampler boundary and costs that tick only.
"""


class AcquisitionError(RuntimeError):
    """Camera/microphone could not be acquired. Recoverable by retrying."""

    reason = "unknown"

    def __init__(self, message: str = None):
        super().__init__(message or f"Capture acquisition failed ({self.reason})")


class PermissionDeniedError(AcquisitionError):
    """The user or the OS refused access to the camera/microphone."""

    reason = "permission_denied"


class DeviceUnavailableError(AcquisitionError):
    """No camera/microphone was found."""

    reason = "device_unavailable"


class DeviceBusyError(AcquisitionError):
    """The device exists but another application holds it."""

    reason = "device_busy"


class DetectorInitError(RuntimeError):
    """Landmark detector could not be initialized; heuristic detection is used instead."""


class SampleProcessingError(RuntimeError):
    """Analysis of a single tick failed. The tick is skipped."""


class InvalidBufferError(ValueError):
    """Empty or corrupt frame. The tick is dropped."""
