"""Orchestration of one capture cycle: acquire, publish frame, detect, publish count."""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from .models.config import CaptureTrigger, ModelReadiness
from .models.detection import CaptureOutcome, Detection
from .services.errors import (
    AcquisitionTimeout, CaptureError, CaptureInFlight, DetectionFailed,
    ModelNotReady, SourceUnavailable
)
from .services.error_handler import ErrorHandler, ErrorSeverity
from .services.interfaces import DetectionCapabilityInterface, FrameSourceInterface
from .session_state import SessionState
from .logging_config import get_logger, log_with_context

logger = get_logger("capture_controller")

ERROR_SEVERITIES = {
    SourceUnavailable: ErrorSeverity.HIGH,
    AcquisitionTimeout: ErrorSeverity.MEDIUM,
    DetectionFailed: ErrorSeverity.MEDIUM,
}


def count_persons(detections: Iterable[Detection]) -> int:
    """Number of detections labelled "person", whatever their confidence."""
    return sum(1 for detection in detections if detection.is_person)


class CaptureController:
    """Runs capture cycles, at most one at a time.

    ``run_capture`` raises the capture error taxonomy to its caller.
    ``trigger`` is the boundary used by the scheduler and the web API: it
    drops requests while a cycle is in flight and turns every failure into an
    error record on the session state.
    """

    component_name = "capture_controller"

    def __init__(self, session_state: SessionState,
                 detector: DetectionCapabilityInterface,
                 source_provider: Callable[[], FrameSourceInterface],
                 error_handler: Optional[ErrorHandler] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 background: bool = True):
        self.session_state = session_state
        self.detector = detector
        self.source_provider = source_provider
        self.error_handler = error_handler or ErrorHandler()
        self.clock = clock
        self.background = background

        self._in_flight = threading.Lock()
        self._worker: Optional[threading.Thread] = None
        self._stats_lock = threading.Lock()

        self.capture_count = 0
        self.failure_count = 0
        self.dropped_count = 0

        self.error_handler.register_component(self.component_name)

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def run_capture(self, trigger: CaptureTrigger = CaptureTrigger.MANUAL) -> CaptureOutcome:
        """Run one capture cycle in the calling thread."""
        self._check_ready()
        if not self._in_flight.acquire(blocking=False):
            raise CaptureInFlight("A capture is already in progress")
        try:
            return self._run_cycle(trigger)
        finally:
            self._in_flight.release()

    def trigger(self, trigger: CaptureTrigger = CaptureTrigger.MANUAL) -> bool:
        """Start a capture cycle unless one is running.

        Returns True if the request was accepted. Failures of the cycle are
        recorded, never raised.
        """
        try:
            self._check_ready()
        except ModelNotReady as e:
            # Session state is left untouched
            self._count("failure_count")
            logger.info(f"Ignored {trigger.value} capture request: {e}")
            self.error_handler.handle_error(self.component_name, e, ErrorSeverity.LOW)
            return False

        if not self._in_flight.acquire(blocking=False):
            self._count("dropped_count")
            logger.info(f"Dropped {trigger.value} capture request: capture already in progress")
            return False

        if not self.background:
            self._run_and_report(trigger)
            return True

        try:
            self._worker = threading.Thread(target=self._run_and_report, args=(trigger,),
                                            name="capture-cycle", daemon=True)
            self._worker.start()
        except RuntimeError:
            self._in_flight.release()
            raise
        return True

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for a background cycle to finish. Returns False on timeout."""
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)
            return not worker.is_alive()
        return True

    def _count(self, counter: str) -> int:
        with self._stats_lock:
            value = getattr(self, counter) + 1
            setattr(self, counter, value)
        return value

    def _check_ready(self) -> None:
        readiness = self.detector.readiness
        if readiness is not ModelReadiness.READY:
            raise ModelNotReady(f"Detection model is not ready ({readiness.value})")

    def _run_and_report(self, trigger: CaptureTrigger) -> None:
        # Called with the in-flight lock held; releases it.
        try:
            self._run_cycle(trigger)
        except CaptureError as e:
            self._report(e, trigger)
        except Exception as e:
            logger.error(f"Unexpected error in capture cycle: {e}", exc_info=True)
            self._count("failure_count")
            self.session_state.publish_error(
                self.error_handler.handle_error(self.component_name, e, ErrorSeverity.HIGH))
        finally:
            self._in_flight.release()

    def _run_cycle(self, trigger: CaptureTrigger = CaptureTrigger.MANUAL) -> CaptureOutcome:
        cycle_start = time.time()

        # The source is chosen once per cycle; later switches only affect the next cycle
        source = self.source_provider()
        try:
            frame = source.acquire()
        except CaptureError:
            raise
        except Exception as e:
            raise SourceUnavailable(f"{source.name} failed: {e}") from e

        captured_at = self.clock()
        capture_number = self._count("capture_count")
        self.session_state.publish_frame(frame, captured_at)
        logger.info(f"Capture #{capture_number} ({trigger.value}) took a frame from {source.name}")

        detection_start = time.time()
        try:
            detections = self.detector.detect(frame.image)
        except Exception as e:
            raise DetectionFailed(f"Detection failed: {e}") from e
        detection_time = time.time() - detection_start

        person_count = count_persons(detections)
        outcome = self.session_state.publish_count(frame, person_count)
        self.error_handler.mark_healthy(self.component_name)

        log_with_context(logger, logging.INFO, f"Detected {person_count} person(s)", {
            "trigger": trigger.value,
            "source": source.name,
            "objects": len(detections),
            "detection_ms": round(detection_time * 1000, 1),
            "cycle_ms": round((time.time() - cycle_start) * 1000, 1)
        })
        return outcome

    def _report(self, error: CaptureError, trigger: CaptureTrigger) -> None:
        self._count("failure_count")
        severity = ERROR_SEVERITIES.get(type(error), ErrorSeverity.MEDIUM)
        logger.debug(f"{trigger.value} capture ended with {type(error).__name__}")
        record = self.error_handler.handle_error(self.component_name, error, severity)
        self.session_state.publish_error(record)
