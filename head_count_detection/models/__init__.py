"""Data models for the head count detection system."""

from .detection import BoundingBox, Detection, Frame, CaptureOutcome, PERSON_LABEL
from .config import (
    CameraSourceKind,
    CameraFacing,
    FrameSourceConfig,
    ScheduleConfig,
    SystemConfig,
    ModelReadiness,
    SchedulerState,
    CaptureTrigger,
)

__all__ = [
    'BoundingBox', 'Detection', 'Frame', 'CaptureOutcome', 'PERSON_LABEL',
    'CameraSourceKind', 'CameraFacing', 'FrameSourceConfig', 'ScheduleConfig',
    'SystemConfig', 'ModelReadiness', 'SchedulerState', 'CaptureTrigger',
]
