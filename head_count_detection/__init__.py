"""
Head Count Detection System

Samples a frame from a local camera or a remote image endpoint at a target
time of day (or on demand) and counts the people detected in it.
"""

__version__ = "1.0.0"
__author__ = "Head Count Detection System"

from .config_manager import ConfigManager
from .models import (
    BoundingBox,
    Detection,
    Frame,
    CaptureOutcome,
    CameraSourceKind,
    CameraFacing,
    FrameSourceConfig,
    ScheduleConfig,
    SystemConfig,
    ModelReadiness
)
from .services import (
    FrameSourceInterface,
    DetectionCapabilityInterface,
    CaptureError,
    ModelNotReady,
    SourceUnavailable,
    AcquisitionTimeout,
    DetectionFailed,
    CaptureInFlight,
    ConfigurationError
)
from .session_state import SessionState
from .capture_controller import CaptureController
from .capture_scheduler import CaptureScheduler
from .head_count_session import HeadCountSession

__all__ = [
    # Core
    'ConfigManager',
    'SessionState',
    'CaptureController',
    'CaptureScheduler',
    'HeadCountSession',

    # Data models
    'BoundingBox',
    'Detection',
    'Frame',
    'CaptureOutcome',
    'CameraSourceKind',
    'CameraFacing',
    'FrameSourceConfig',
    'ScheduleConfig',
    'SystemConfig',
    'ModelReadiness',

    # Service interfaces and errors
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
