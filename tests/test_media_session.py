"""
Unit tests for shared capture ownership.

Tests cover:
- Reference counting of leases
- Idempotent release and shutdown
- Acquisition failures and retry
- Frame/audio access through a lease
"""

import pytest # pyright: ignore[reportMissingImports]
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from capture.media_session import CaptureState, MediaSessionManager
from utils.errors import (
    AcquisitionError,
    DeviceBusyError,
    DeviceUnavailableError,
    PermissionDeniedError,
)
from fakes import FakeCapturePort


class TestLeaseCounting:
    """Test reference-counted device ownership."""

    def test_first_request_opens_device(self):
        """Test the device opens on the first lease."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)

        assert manager.state is CaptureState.IDLE

        lease = manager.request_access()

        assert manager.state is CaptureState.ACTIVE
        assert port.open_calls == 1
        assert manager.ref_count == 1
        assert lease.active

    def test_second_request_reuses_device(self):
        """Test a request while ACTIVE makes no new hardware request."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)

        first = manager.request_access()
        second = manager.request_access()

        assert port.open_calls == 1
        assert manager.ref_count == 2
        assert first.lease_id != second.lease_id

    def test_device_closes_on_last_release(self):
        """Test the device stays open until every lease is released."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)

        preview = manager.request_access()
        analyzer = manager.request_access()

        assert preview.release() is True
        assert port.close_calls == 0
        assert manager.state is CaptureState.ACTIVE
        assert analyzer.active

        assert analyzer.release() is True
        assert port.close_calls == 1
        assert manager.state is CaptureState.IDLE

    def test_double_release_is_noop(self):
        """Test releasing the same lease twice decrements once."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)

        keep = manager.request_access()
        lease = manager.request_access()

        assert lease.release() is True
        assert lease.release() is False
        assert manager.ref_count == 1
        assert keep.active
        assert port.close_calls == 0

    def test_context_manager_releases(self):
        """Test a lease used as a context manager is released on exit."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)

        with manager.request_access() as lease:
            assert lease.active

        assert lease.released
        assert port.close_calls == 1


class TestShutdown:
    """Test teardown."""

    def test_shutdown_closes_with_outstanding_leases(self):
        """Test shutdown closes the device regardless of the count."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)
        lease = manager.request_access()
        manager.request_access()

        manager.shutdown()

        assert port.close_calls == 1
        assert manager.ref_count == 0
        assert manager.state is CaptureState.IDLE
        assert not lease.active

    def test_shutdown_is_idempotent(self):
        """Test repeated shutdown closes the device once."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)
        manager.request_access()

        manager.shutdown()
        manager.shutdown()

        assert port.close_calls == 1

    def test_release_after_shutdown_is_noop(self):
        """Test releasing a lease after shutdown does nothing."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)
        lease = manager.request_access()

        manager.shutdown()

        assert lease.release() is False
        assert port.close_calls == 1

    def test_old_lease_stays_dead_after_reopen(self):
        """Test a lease cut off by shutdown does not come back with the next device."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)
        old = manager.request_access()
        manager.shutdown()

        new = manager.request_access()

        assert old.released
        assert not old.active
        assert new.active
        assert manager.ref_count == 1
        with pytest.raises(RuntimeError):
            old.pull_frame()

        assert old.release() is False
        assert manager.ref_count == 1
        assert port.close_calls == 1

    def test_shutdown_idle_manager(self):
        """Test shutting down a manager that never opened."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)

        manager.shutdown()

        assert port.close_calls == 0
        assert manager.state is CaptureState.IDLE


class TestAcquisitionFailure:
    """Test acquisition errors."""

    @pytest.mark.parametrize("error_cls", [PermissionDeniedError, DeviceUnavailableError, DeviceBusyError])
    def test_error_propagates_and_sets_failed(self, error_cls):
        """Test the error reaches the caller and the manager is FAILED."""
        port = FakeCapturePort()
        port.open_error = error_cls()
        manager = MediaSessionManager(port)

        with pytest.raises(error_cls):
            manager.request_access()

        assert manager.state is CaptureState.FAILED
        assert isinstance(manager.last_error, AcquisitionError)
        assert manager.ref_count == 0

    def test_no_automatic_retry(self):
        """Test a failure makes exactly one hardware request."""
        port = FakeCapturePort()
        port.open_error = DeviceBusyError()
        manager = MediaSessionManager(port)

        with pytest.raises(DeviceBusyError):
            manager.request_access()

        assert port.open_calls == 1

    def test_caller_retry_succeeds(self):
        """Test FAILED -> REQUESTING -> ACTIVE on an explicit retry."""
        port = FakeCapturePort()
        port.open_error = PermissionDeniedError()
        manager = MediaSessionManager(port)

        with pytest.raises(PermissionDeniedError):
            manager.request_access()

        lease = manager.request_access()

        assert manager.state is CaptureState.ACTIVE
        assert manager.last_error is None
        assert lease.active

    def test_error_reason(self):
        """Test each acquisition error carries a distinct reason."""
        reasons = {cls.reason for cls in (PermissionDeniedError, DeviceUnavailableError, DeviceBusyError)}
        assert len(reasons) == 3


class TestLeaseAccess:
    """Test pulling data through a lease."""

    def test_pull_frame_and_audio(self):
        """Test a lease delegates to the port."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)
        lease = manager.request_access()

        assert lease.pull_frame() is port.frame
        assert lease.pull_audio() is port.audio

    def test_pull_after_release_raises(self):
        """Test a released lease can no longer pull frames."""
        port = FakeCapturePort()
        manager = MediaSessionManager(port)
        lease = manager.request_access()
        lease.release()

        assert not lease.active
        with pytest.raises(RuntimeError):
            lease.pull_frame()
