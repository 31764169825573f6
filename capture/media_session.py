"""
Shared camera + microphone ownership.

One MediaSessionManager owns the physical device. Consumers (preview,
recorder, analyzer) each take a lease; the device is opened on the first
lease and closed when the last lease is released.

State machine:
    IDLE -> REQUESTING -> ACTIVE
    REQUESTING -> FAILED          (caller may retry: FAILED -> REQUESTING)
    ACTIVE -> IDLE                (last lease released, or shutdown)

Acquisition errors are raised to the caller and never retried here.
"""

import logging
import threading
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from audio_pipeline.audio_quality import AudioBuffer
from utils.errors import AcquisitionError

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    ACTIVE = "active"
    FAILED = "failed"


class CaptureLease:
    """
    One consumer's reference on the shared device.

    Releasing a lease more than once has no effect.
    """

    def __init__(self, manager: 'MediaSessionManager', lease_id: int):
        self._manager = manager
        self.lease_id = lease_id
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def active(self) -> bool:
        """True while this lease is held and the device is open."""
        return not self._released and self._manager.state is CaptureState.ACTIVE

    def pull_frame(self) -> np.ndarray:
        return self._manager._pull_frame(self)

    def pull_audio(self) -> AudioBuffer:
        return self._manager._pull_audio(self)

    def release(self) -> bool:
        return self._manager.release(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def __repr__(self) -> str:
        return f"CaptureLease(id={self.lease_id}, released={self._released})"


class MediaSessionManager:
    """
    Reference-counted owner of the capture device.

    Usage:
        manager = MediaSessionManager(CameraCapturePort())
        lease = manager.request_access()     # may raise AcquisitionError
        frame = lease.pull_frame()
        lease.release()
    """

    def __init__(self, port):
        """
        Args:
            port: Capture port with open(), pull_frame(handle),
                  pull_audio(handle) and close(handle)
        """
        self._port = port
        self._lock = threading.RLock()
        self._state = CaptureState.IDLE
        self._handle: Any = None
        self._leases: Dict[int, CaptureLease] = {}
        self._next_lease_id = 1
        self.last_error: Optional[AcquisitionError] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def ref_count(self) -> int:
        with self._lock:
            return len(self._leases)

    def request_access(self) -> CaptureLease:
        """
        Acquire a lease, opening the device if needed.

        A call while ACTIVE reuses the open device (no new hardware request).

        Raises:
            PermissionDeniedError, DeviceUnavailableError, DeviceBusyError
        """
        with self._lock:
            if self._state is not CaptureState.ACTIVE:
                self._set_state(CaptureState.REQUESTING)
                try:
                    self._handle = self._port.open()
                except AcquisitionError as e:
                    self.last_error = e
                    self._handle = None
                    self._set_state(CaptureState.FAILED)
                    logger.error(f"Capture acquisition failed: {e}")
                    raise
                self.last_error = None
                self._set_state(CaptureState.ACTIVE)
                logger.info("Capture device opened")

            lease = CaptureLease(self, self._next_lease_id)
            self._next_lease_id += 1
            self._leases[lease.lease_id] = lease

            logger.debug(f"Lease {lease.lease_id} granted (ref_count={len(self._leases)})")

            return lease

    def release(self, lease: CaptureLease) -> bool:
        """
        Release a lease; close the device when none remain.

        Returns:
            True if this call released the lease, False if it was a no-op
        """
        with self._lock:
            if lease.released or lease.lease_id not in self._leases:
                lease._released = True
                return False

            lease._released = True
            del self._leases[lease.lease_id]
            logger.debug(f"Lease {lease.lease_id} released (ref_count={len(self._leases)})")

            if not self._leases:
                self._close_device()

            return True

    def shutdown(self):
        """Close the device regardless of outstanding leases. Idempotent."""
        with self._lock:
            if self._leases:
                logger.info(f"Shutting down capture with {len(self._leases)} outstanding lease(s)")
            for lease in self._leases.values():
                lease._released = True
            self._leases.clear()
            self._close_device()

    def _close_device(self):
        if self._handle is None:
            if self._state is not CaptureState.FAILED:
                self._set_state(CaptureState.IDLE)
            return

        handle, self._handle = self._handle, None
        try:
            self._port.close(handle)
        except Exception as e:
            logger.warning(f"Error while closing capture device: {e}")
        self._set_state(CaptureState.IDLE)
        logger.info("Capture device closed")

    def _set_state(self, state: CaptureState):
        if state is not self._state:
            logger.debug(f"Capture state {self._state.value} -> {state.value}")
            self._state = state

    def _checked_handle(self, lease: CaptureLease) -> Any:
        with self._lock:
            if lease.released or lease.lease_id not in self._leases or self._handle is None:
                raise RuntimeError(f"Capture lease {lease.lease_id} is not active")
            return self._handle

    def _pull_frame(self, lease: CaptureLease) -> np.ndarray:
        return self._port.pull_frame(self._checked_handle(lease))

    def _pull_audio(self, lease: CaptureLease) -> AudioBuffer:
        return self._port.pull_audio(self._checked_handle(lease))
