"""Error recording and component status tracking."""

import threading
import traceback
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum

from ..config.defaults import SYSTEM_CONSTANTS
from ..logging_config import get_logger

logger = get_logger("error_handler")


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ComponentStatus(Enum):
    """Component status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class ErrorRecord:
    """Record of an error occurrence."""
    component_name: str
    error: Exception
    severity: ErrorSeverity
    timestamp: datetime = field(default_factory=datetime.now)
    traceback_str: str = ""

    @property
    def error_type(self) -> str:
        return type(self.error).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "component": self.component_name,
            "type": self.error_type,
            "message": str(self.error),
            "severity": self.severity.value,
            "recoverable": getattr(self.error, "recoverable", False),
            "timestamp": self.timestamp.isoformat()
        }


class ErrorHandler:
    """Central error bookkeeping.

    Errors are recorded and reflected in the component status; nothing is
    retried from here.
    """

    def __init__(self, max_records: int = SYSTEM_CONSTANTS["MAX_ERROR_RECORDS"]):
        self.error_records: Deque[ErrorRecord] = deque(maxlen=max_records)
        self.component_error_counts: Dict[str, int] = {}
        self.component_status: Dict[str, ComponentStatus] = {}
        self._lock = threading.Lock()

    def register_component(self, component_name: str) -> None:
        """Register a component for error tracking."""
        with self._lock:
            self.component_error_counts.setdefault(component_name, 0)
            self.component_status.setdefault(component_name, ComponentStatus.HEALTHY)
        logger.debug(f"Component registered: {component_name}")

    def handle_error(self, component_name: str, error: Exception,
                     severity: ErrorSeverity) -> ErrorRecord:
        """Record an error from a component and update its status."""
        error_record = ErrorRecord(
            component_name=component_name,
            error=error,
            severity=severity,
            traceback_str="".join(traceback.format_exception(
                type(error), error, error.__traceback__))
        )

        with self._lock:
            self.error_records.append(error_record)
            self.component_error_counts[component_name] = \
                self.component_error_counts.get(component_name, 0) + 1

            if severity == ErrorSeverity.CRITICAL:
                self.component_status[component_name] = ComponentStatus.FAILED
            elif severity == ErrorSeverity.HIGH:
                self.component_status[component_name] = ComponentStatus.DEGRADED
            else:
                self.component_status.setdefault(component_name, ComponentStatus.HEALTHY)

        logger.error(f"Error in {component_name}: {error_record.error_type}: {error} "
                     f"(Severity: {severity.value})")
        return error_record

    def mark_healthy(self, component_name: str) -> None:
        """Reset a component to HEALTHY after a successful operation."""
        with self._lock:
            previous = self.component_status.get(component_name)
            self.component_status[component_name] = ComponentStatus.HEALTHY
        if previous not in (None, ComponentStatus.HEALTHY):
            logger.info(f"Component {component_name} recovered ({previous.value} -> healthy)")

    def reset_error_counts(self, component_name: Optional[str] = None) -> None:
        """Reset error counts for one component or all of them."""
        with self._lock:
            if component_name:
                self.component_error_counts[component_name] = 0
            else:
                for name in self.component_error_counts:
                    self.component_error_counts[name] = 0

    def get_component_health(self) -> Dict[str, ComponentStatus]:
        with self._lock:
            return dict(self.component_status)

    def get_last_error(self, component_name: Optional[str] = None) -> Optional[ErrorRecord]:
        with self._lock:
            for record in reversed(self.error_records):
                if component_name is None or record.component_name == component_name:
                    return record
        return None

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        with self._lock:
            return {
                "total_errors": len(self.error_records),
                "component_error_counts": dict(self.component_error_counts),
                "component_status": {name: status.value
                                     for name, status in self.component_status.items()}
            }

    def get_error_summary(self, hours: int = 24) -> Dict[str, Any]:
        """Get error summary for the last N hours."""
        cutoff_time = datetime.now() - timedelta(hours=hours)
        with self._lock:
            recent_errors: List[ErrorRecord] = [
                record for record in self.error_records if record.timestamp >= cutoff_time
            ]

        component_counts: Dict[str, int] = {}
        type_counts: Dict[str, int] = {}
        severity_counts = {severity.value: 0 for severity in ErrorSeverity}

        for error in recent_errors:
            component_counts[error.component_name] = component_counts.get(error.component_name, 0) + 1
            type_counts[error.error_type] = type_counts.get(error.error_type, 0) + 1
            severity_counts[error.severity.value] += 1

        return {
            "total_errors": len(recent_errors),
            "component_counts": component_counts,
            "type_counts": type_counts,
            "severity_counts": severity_counts,
            "time_period_hours": hours
        }
