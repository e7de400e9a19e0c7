"""Configuration data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class CameraSourceKind(Enum):
    """Which frame source variant is active."""
    LOCAL = "local"
    REMOTE = "remote"


class CameraFacing(Enum):
    """Device-facing preference of the local camera."""
    USER = "user"
    ENVIRONMENT = "environment"


class ModelReadiness(Enum):
    """Readiness of the detection capability."""
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class SchedulerState(Enum):
    """Externally visible scheduler mode."""
    IDLE = "idle"
    ARMED_AUTOMATIC = "armed_automatic"


class CaptureTrigger(Enum):
    """What asked for a capture."""
    SCHEDULED = "scheduled"
    MANUAL = "manual"


@dataclass(frozen=True)
class ScheduleConfig:
    """Target time of day (hour, minute) and the auto-capture flag."""
    hour: int
    minute: int
    auto_enabled: bool = True

    @property
    def target_time(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class FrameSourceConfig:
    """Parameters of both source variants.

    An empty ``remote_url`` means the remote source is unavailable.
    """
    remote_url: str = ""
    local_facing: CameraFacing = CameraFacing.USER


@dataclass
class SystemConfig:
    """System configuration settings loaded at startup."""
    # Schedule; an empty target time means "current minute at session start"
    target_time: str = ""
    auto_capture_enabled: bool = True

    # Sources
    camera_source: str = "local"
    remote_url: str = ""
    local_facing: str = "user"
    local_device_indices: Dict[str, int] = field(
        default_factory=lambda: {"user": 0, "environment": 1})
    local_acquire_timeout_seconds: float = 5.0
    remote_refresh_interval_seconds: float = 1.0
    remote_request_timeout_seconds: float = 10.0

    # Detection model
    model_path: str = "models/frozen_inference_graph.pb"
    model_config_path: str = "models/ssd_mobilenet_v2_coco.pbtxt"
    detection_input_size: Tuple[int, int] = (300, 300)

    # Web API
    web_host: str = "0.0.0.0"
    web_port: int = 5000

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
