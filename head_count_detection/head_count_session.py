"""Head count session: wires sources, detector, controller and scheduler together."""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .capture_controller import CaptureController
from .capture_scheduler import CaptureScheduler
from .config_manager import ConfigManager, parse_facing, parse_source_kind, parse_time_of_day
from .models.config import CameraFacing, CameraSourceKind
from .services.detection_capability import CocoSsdDetector
from .services.error_handler import ErrorHandler
from .services.errors import ConfigurationError
from .services.frame_source import RemoteFrameSource, create_frame_source
from .services.interfaces import DetectionCapabilityInterface, FrameSourceInterface
from .session_state import SessionState
from .logging_config import get_logger

logger = get_logger("head_count_session")


class HeadCountSession:
    """One head count session, from start() to stop().

    Exposes the configuration surface used by the presentation layer:
    target time, auto capture flag, camera source, remote URL and local
    facing, plus read-only access to the latest outcome and model readiness.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None,
                 detector: Optional[DetectionCapabilityInterface] = None,
                 frame_sources: Optional[Dict[CameraSourceKind, FrameSourceInterface]] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 background: bool = True):
        self.config_manager = config_manager or ConfigManager()
        self.config = self.config_manager.get_config()
        self.clock = clock

        self.error_handler = ErrorHandler()
        self.session_state = SessionState(
            schedule=self.config_manager.schedule_config(clock()),
            source_kind=self.config_manager.source_kind(),
            source_config=self.config_manager.frame_source_config()
        )

        self.detector = detector or CocoSsdDetector(
            model_path=self.config.model_path,
            config_path=self.config.model_config_path,
            input_size=self.config.detection_input_size
        )
        self.detector.add_ready_observer(self._on_model_settled)

        if frame_sources is None:
            source_config = self.session_state.source_config
            frame_sources = {kind: create_frame_source(kind, source_config, self.config)
                             for kind in CameraSourceKind}
        self.frame_sources = dict(frame_sources)
        self._source_lock = threading.Lock()

        self.controller = CaptureController(
            self.session_state, self.detector, self.active_source,
            error_handler=self.error_handler, clock=clock, background=background
        )
        self.scheduler = CaptureScheduler(self.session_state, self.controller.trigger, clock=clock)

        self.running = False
        self.start_time: Optional[datetime] = None

        logger.info(f"Head count session initialized (source: {self.session_state.source_kind.value}, "
                    f"target: {self.session_state.schedule.target_time})")

    def _on_model_settled(self, readiness) -> None:
        self.session_state.set_model_readiness(readiness)
        logger.info(f"Detection model readiness: {readiness.value}")

    def active_source(self) -> FrameSourceInterface:
        with self._source_lock:
            return self.frame_sources[self.session_state.source_kind]

    # Lifecycle

    def start(self) -> bool:
        if self.running:
            logger.warning("Session is already running")
            return False

        self.detector.load_async()
        self.active_source().start()
        self.scheduler.start()

        self.running = True
        self.start_time = self.clock()
        logger.info("Head count session started")
        return True

    def stop(self, timeout: float = 30.0) -> None:
        """Stop new triggers, let an in-flight capture finish, release the sources."""
        if not self.running:
            return

        self.scheduler.stop()
        if not self.controller.wait_idle(timeout):
            logger.warning("In-flight capture did not finish before shutdown")

        for source in self.frame_sources.values():
            source.stop()

        self.running = False
        logger.info("Head count session stopped")

    # Configuration surface

    def set_target_time(self, value: str) -> None:
        hour, minute = parse_time_of_day(value)
        self.session_state.set_target_time(hour, minute)
        logger.info(f"Target time set to {hour:02d}:{minute:02d}")

    def set_auto_capture_enabled(self, enabled: bool) -> None:
        if not isinstance(enabled, bool):
            raise ConfigurationError(f"auto_capture_enabled must be a boolean, got {enabled!r}")
        self.session_state.set_auto_enabled(enabled)
        logger.info(f"Auto capture {'enabled' if enabled else 'disabled'}")

    def set_camera_source(self, kind) -> None:
        if not isinstance(kind, CameraSourceKind):
            kind = parse_source_kind(kind)

        with self._source_lock:
            previous = self.frame_sources[self.session_state.source_kind]
            if self.session_state.source_kind is kind:
                return
            self.session_state.set_source_kind(kind)
            current = self.frame_sources[kind]

        if self.running:
            current.start()
            self._retire_source(previous)
        logger.info(f"Camera source set to {kind.value}")

    def set_remote_url(self, url: str) -> None:
        if not isinstance(url, str):
            raise ConfigurationError(f"remote_url must be a string, got {url!r}")
        url = url.strip()
        self.session_state.set_remote_url(url)

        remote = self.frame_sources.get(CameraSourceKind.REMOTE)
        if isinstance(remote, RemoteFrameSource):
            remote.set_url(url)

    def set_local_facing(self, facing) -> None:
        if not isinstance(facing, CameraFacing):
            facing = parse_facing(facing)
        if self.session_state.source_config.local_facing is facing:
            return

        self.session_state.set_local_facing(facing)
        replacement = create_frame_source(CameraSourceKind.LOCAL,
                                          self.session_state.source_config, self.config)
        with self._source_lock:
            previous = self.frame_sources.get(CameraSourceKind.LOCAL)
            self.frame_sources[CameraSourceKind.LOCAL] = replacement
            active = self.session_state.source_kind is CameraSourceKind.LOCAL

        if self.running and active:
            replacement.start()
        if previous is not None:
            self._retire_source(previous)
        logger.info(f"Local camera facing set to {facing.value}")

    def update(self, **values) -> None:
        """Apply several configuration values, all validated before any is applied."""
        unknown = set(values) - {"target_time", "auto_capture_enabled", "camera_source",
                                 "remote_url", "local_facing"}
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        if "target_time" in values:
            parse_time_of_day(values["target_time"])
        if "camera_source" in values:
            parse_source_kind(values["camera_source"])
        if "local_facing" in values:
            parse_facing(values["local_facing"])
        if "auto_capture_enabled" in values and not isinstance(values["auto_capture_enabled"], bool):
            raise ConfigurationError("auto_capture_enabled must be a boolean")
        if "remote_url" in values and not isinstance(values["remote_url"], str):
            raise ConfigurationError("remote_url must be a string")

        if "remote_url" in values:
            self.set_remote_url(values["remote_url"])
        if "local_facing" in values:
            self.set_local_facing(values["local_facing"])
        if "camera_source" in values:
            self.set_camera_source(values["camera_source"])
        if "target_time" in values:
            self.set_target_time(values["target_time"])
        if "auto_capture_enabled" in values:
            self.set_auto_capture_enabled(values["auto_capture_enabled"])

    def _retire_source(self, source: FrameSourceInterface) -> None:
        """Stop a source that is no longer selected, once no capture is using it."""
        def retire():
            self.controller.wait_idle()
            if source is not self.active_source():
                source.stop()

        if not self.controller.in_flight:
            retire()
        else:
            threading.Thread(target=retire, name="retire-source", daemon=True).start()

    # Actions and status

    def capture_now(self) -> bool:
        """Manual trigger. Returns False if the request was not accepted."""
        return self.scheduler.request_manual()

    def latest_frame_jpeg(self) -> Optional[bytes]:
        outcome = self.session_state.latest_outcome
        return outcome.frame_snapshot.encoded if outcome else None

    def get_status(self) -> Dict[str, Any]:
        uptime = (self.clock() - self.start_time).total_seconds() if self.running and self.start_time else 0
        source = self.active_source()
        return {
            "running": self.running,
            "uptime_seconds": uptime,
            "scheduler_state": self.scheduler.state.value,
            "capture_in_flight": self.controller.in_flight,
            "source_available": source.is_available(),
            "capture_count": self.controller.capture_count,
            "failure_count": self.controller.failure_count,
            "dropped_count": self.controller.dropped_count,
            "session": self.session_state.snapshot(),
            "errors": self.error_handler.get_error_summary()
        }
