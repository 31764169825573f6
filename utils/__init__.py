"""Shared utilities for the interview presence engine."""

from .config_loader import load_config, load_run_config, get_nested_config
from .errors import (
    AcquisitionError,
    PermissionDeniedError,
    DeviceUnavailableError,
    DeviceBusyError,
    DetectorInitError,
    SampleProcessingError,
    InvalidBufferError,
)

__all__ = [
    'load_config',
    'load_run_config',
    'get_nested_config',
    'AcquisitionError',
    'PermissionDeniedError',
    'DeviceUnavailableError',
    'DeviceBusyError',
    'DetectorInitError',
    'SampleProcessingError',
    'InvalidBufferError',
]
