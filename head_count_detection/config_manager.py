"""Startup configuration loading and the configuration input boundary."""

import dataclasses
import json
import os
import re
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .config.defaults import DEFAULT_PATHS
from .models.config import (
    CameraFacing, CameraSourceKind, FrameSourceConfig, ScheduleConfig, SystemConfig
)
from .services.errors import ConfigurationError
from .logging_config import get_logger

logger = get_logger("config_manager")

_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute), rejecting anything that is not a 24-hour clock value."""
    match = _TIME_OF_DAY.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ConfigurationError(f"Invalid time of day {value!r}, expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ConfigurationError(f"Invalid time of day {value!r}, out of range")
    return hour, minute


def parse_source_kind(value: str) -> CameraSourceKind:
    try:
        return CameraSourceKind(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid camera source {value!r}, expected one of "
            f"{[kind.value for kind in CameraSourceKind]}") from None


def parse_facing(value: str) -> CameraFacing:
    try:
        return CameraFacing(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid camera facing {value!r}, expected one of "
            f"{[facing.value for facing in CameraFacing]}") from None


def _coerce(value: Any, default: Any) -> Any:
    """Check a loaded value against the type of its default."""
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise TypeError(f"expected a boolean, got {value!r}")
        return value

    if isinstance(default, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"expected a number, got {value!r}")
        if isinstance(default, int) and not isinstance(value, int):
            raise TypeError(f"expected an integer, got {value!r}")
        return value

    if isinstance(default, tuple):
        if not isinstance(value, (list, tuple)) or len(value) != len(default):
            raise TypeError(f"expected a list of {len(default)} values, got {value!r}")
        if any(isinstance(item, bool) or not isinstance(item, int) for item in value):
            raise TypeError(f"expected integers, got {value!r}")
        return tuple(value)

    if isinstance(default, dict):
        if not isinstance(value, dict):
            raise TypeError(f"expected an object, got {value!r}")
        return dict(value)

    if not isinstance(value, type(default)):
        raise TypeError(f"expected {type(default).__name__}, got {value!r}")
    return value


def _require_positive(config: SystemConfig, name: str) -> None:
    value = getattr(config, name)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")


class ConfigManager:
    """Loads the startup configuration from a JSON file.

    Runtime changes are kept in memory only; the file is never rewritten.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or DEFAULT_PATHS["config_file"]
        self._config: Optional[SystemConfig] = None

        self.load_config()

    def load_config(self) -> SystemConfig:
        """Load configuration from file, falling back to defaults."""
        self._config = SystemConfig()

        if not os.path.exists(self.config_path):
            logger.info(f"No config file at {self.config_path}, using defaults")
            return self._config

        try:
            with open(self.config_path, 'r') as f:
                config_dict = json.load(f)
            if not isinstance(config_dict, dict):
                raise TypeError("top level of config file must be an object")
        except (OSError, json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Error loading config {self.config_path}: {e}. Using defaults.")
            return self._config

        self._apply(config_dict)
        logger.info(f"Configuration loaded from {self.config_path}")
        return self._config

    def _apply(self, values: Dict[str, Any]) -> None:
        known = {f.name for f in dataclasses.fields(SystemConfig)}
        for key, value in values.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            try:
                value = _coerce(value, getattr(self._config, key))
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring config key {key}: {e}. Keeping default.")
                continue
            setattr(self._config, key, value)

    def get_config(self) -> SystemConfig:
        """Get current configuration."""
        if self._config is None:
            return self.load_config()
        return self._config

    def validate_config(self) -> bool:
        """Validate current configuration."""
        try:
            self.check_config()
        except ConfigurationError as e:
            logger.warning(f"Invalid configuration: {e}")
            return False
        return True

    def check_config(self) -> None:
        """Raise ConfigurationError describing the first invalid value."""
        config = self.get_config()

        if config.target_time:
            parse_time_of_day(config.target_time)
        parse_source_kind(config.camera_source)
        parse_facing(config.local_facing)

        if not isinstance(config.remote_url, str):
            raise ConfigurationError("remote_url must be a string")
        for name in ("local_acquire_timeout_seconds", "remote_refresh_interval_seconds",
                     "remote_request_timeout_seconds"):
            _require_positive(config, name)

        size = config.detection_input_size
        if (not isinstance(size, (list, tuple)) or len(size) != 2 or
                not all(isinstance(side, int) and side > 0 for side in size)):
            raise ConfigurationError(f"detection_input_size must be two positive integers, got {size!r}")
        port = config.web_port
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise ConfigurationError(f"web_port must be a valid TCP port, got {port!r}")

    def schedule_config(self, now: Optional[datetime] = None) -> ScheduleConfig:
        """Initial schedule; an empty target time means the current minute."""
        config = self.get_config()
        if config.target_time:
            hour, minute = parse_time_of_day(config.target_time)
        else:
            now = now or datetime.now()
            hour, minute = now.hour, now.minute
        return ScheduleConfig(hour=hour, minute=minute,
                              auto_enabled=bool(config.auto_capture_enabled))

    def source_kind(self) -> CameraSourceKind:
        return parse_source_kind(self.get_config().camera_source)

    def frame_source_config(self) -> FrameSourceConfig:
        config = self.get_config()
        return FrameSourceConfig(remote_url=config.remote_url,
                                 local_facing=parse_facing(config.local_facing))

