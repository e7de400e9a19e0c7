"""Configuration components for the head count detection system."""

from .defaults import (
    SYSTEM_CONSTANTS,
    DEFAULT_PATHS,
    CAMERA_SETTINGS,
    MODEL_SETTINGS,
    COCO_LABELS
)

__all__ = [
    'SYSTEM_CONSTANTS',
    'DEFAULT_PATHS',
    'CAMERA_SETTINGS',
    'MODEL_SETTINGS',
    'COCO_LABELS'
]
