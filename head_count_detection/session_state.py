"""Observable session state shared between the capture pipeline and presentation."""

import dataclasses
import threading
from typing import Any, Callable, Dict, List, Optional

from .models.config import (
    CameraFacing, CameraSourceKind, FrameSourceConfig, ModelReadiness, ScheduleConfig
)
from .models.detection import CaptureOutcome, Frame
from .services.error_handler import ErrorRecord
from .logging_config import get_logger

logger = get_logger("session_state")

# Event names passed to subscribers
FRAME_PUBLISHED = "frame_published"
COUNT_PUBLISHED = "count_published"
ERROR_PUBLISHED = "error_published"
CONFIG_CHANGED = "config_changed"
READINESS_CHANGED = "readiness_changed"

Subscriber = Callable[[str, "SessionState"], None]


class SessionState:
    """Latest capture outcome plus the user-editable configuration.

    No validation happens here. Subscribers are called with
    ``(event, state)`` after every mutation, outside the internal lock.
    """

    def __init__(self, schedule: ScheduleConfig,
                 source_kind: CameraSourceKind = CameraSourceKind.LOCAL,
                 source_config: Optional[FrameSourceConfig] = None):
        self._lock = threading.RLock()
        self._schedule = schedule
        self._source_kind = source_kind
        self._source_config = source_config or FrameSourceConfig()
        self._latest_outcome: Optional[CaptureOutcome] = None
        self._model_readiness = ModelReadiness.LOADING
        self._last_error: Optional[ErrorRecord] = None
        self._subscribers: List[Subscriber] = []

    # Subscriptions

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber and return a function that removes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, event: str) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event, self)
            except Exception as e:
                logger.error(f"Error in session subscriber for {event}: {e}", exc_info=True)

    # Read access

    @property
    def schedule(self) -> ScheduleConfig:
        with self._lock:
            return self._schedule

    @property
    def source_kind(self) -> CameraSourceKind:
        with self._lock:
            return self._source_kind

    @property
    def source_config(self) -> FrameSourceConfig:
        with self._lock:
            return self._source_config

    @property
    def latest_outcome(self) -> Optional[CaptureOutcome]:
        with self._lock:
            return self._latest_outcome

    @property
    def model_readiness(self) -> ModelReadiness:
        with self._lock:
            return self._model_readiness

    @property
    def last_error(self) -> Optional[ErrorRecord]:
        with self._lock:
            return self._last_error

    # Configuration

    def set_target_time(self, hour: int, minute: int) -> None:
        with self._lock:
            self._schedule = dataclasses.replace(self._schedule, hour=hour, minute=minute)
        self._notify(CONFIG_CHANGED)

    def set_auto_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._schedule = dataclasses.replace(self._schedule, auto_enabled=enabled)
        self._notify(CONFIG_CHANGED)

    def set_source_kind(self, kind: CameraSourceKind) -> None:
        with self._lock:
            self._source_kind = kind
        self._notify(CONFIG_CHANGED)

    def set_remote_url(self, url: str) -> None:
        with self._lock:
            self._source_config = dataclasses.replace(self._source_config, remote_url=url)
        self._notify(CONFIG_CHANGED)

    def set_local_facing(self, facing: CameraFacing) -> None:
        with self._lock:
            self._source_config = dataclasses.replace(self._source_config, local_facing=facing)
        self._notify(CONFIG_CHANGED)

    def set_model_readiness(self, readiness: ModelReadiness) -> None:
        with self._lock:
            if self._model_readiness is readiness:
                return
            self._model_readiness = readiness
        self._notify(READINESS_CHANGED)

    # Capture results

    def publish_frame(self, frame: Frame, captured_at) -> CaptureOutcome:
        """Replace the latest outcome with a new frame whose count is not known yet.

        The previous cycle's error, if any, is cleared.
        """
        outcome = CaptureOutcome(captured_at=captured_at, frame_snapshot=frame)
        with self._lock:
            self._latest_outcome = outcome
            self._last_error = None
        self._notify(FRAME_PUBLISHED)
        return outcome

    def publish_count(self, frame: Frame, person_count: int) -> Optional[CaptureOutcome]:
        """Set the person count on the outcome holding ``frame``."""
        with self._lock:
            current = self._latest_outcome
            if current is None or current.frame_snapshot is not frame:
                logger.warning("Discarding count for a frame that is no longer displayed")
                return None
            outcome = dataclasses.replace(current, person_count=person_count)
            self._latest_outcome = outcome
            self._last_error = None
        self._notify(COUNT_PUBLISHED)
        return outcome

    def publish_error(self, record: ErrorRecord) -> None:
        with self._lock:
            self._last_error = record
        self._notify(ERROR_PUBLISHED)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of the whole state."""
        with self._lock:
            schedule = self._schedule
            outcome = self._latest_outcome
            last_error = self._last_error
            data = {
                "target_time": schedule.target_time,
                "auto_capture_enabled": schedule.auto_enabled,
                "camera_source": self._source_kind.value,
                "remote_url": self._source_config.remote_url,
                "local_facing": self._source_config.local_facing.value,
                "model_readiness": self._model_readiness.value,
            }

        data["latest_outcome"] = None if outcome is None else {
            "person_count": outcome.person_count,
            "captured_at": outcome.captured_at.isoformat(),
            "captured_at_display": outcome.captured_at_display,
            "summary": outcome.summary(),
            "source": outcome.frame_snapshot.source
        }
        data["last_error"] = last_error.to_dict() if last_error else None
        return data
