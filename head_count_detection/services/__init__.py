"""Services for the head count detection system."""

from .interfaces import FrameSourceInterface, DetectionCapabilityInterface
from .errors import (
    CaptureError,
    ModelNotReady,
    SourceUnavailable,
    AcquisitionTimeout,
    DetectionFailed,
    CaptureInFlight,
    ConfigurationError
)

__all__ = [
    'FrameSourceInterface',
    'DetectionCapabilityInterface',
    'CaptureError',
    'ModelNotReady',
    'SourceUnavailable',
    'AcquisitionTimeout',
    'DetectionFailed',
    'CaptureInFlight',
    'ConfigurationError'
]
