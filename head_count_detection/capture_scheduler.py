"""Wall-clock scheduler that fires automatic captures at a target time of day."""

import threading
from datetime import datetime
from typing import Callable, Optional

from .config.defaults import SYSTEM_CONSTANTS
from .models.config import CaptureTrigger, SchedulerState
from .session_state import SessionState
from .logging_config import get_logger

logger = get_logger("capture_scheduler")


class CaptureScheduler:
    """Evaluates the auto-capture rule once per wall-clock second.

    A scheduled capture is requested iff auto capture is enabled, the current
    (hour, minute) equals the target and the current second is 0. A tick that
    lands late and misses second 0 skips that minute. Manual requests bypass
    the rule. Whether a request actually runs is up to ``on_trigger``.
    """

    def __init__(self, session_state: SessionState,
                 on_trigger: Callable[[CaptureTrigger], bool],
                 clock: Callable[[], datetime] = datetime.now,
                 tick_interval: float = SYSTEM_CONSTANTS["SCHEDULER_TICK_SECONDS"]):
        self.session_state = session_state
        self.on_trigger = on_trigger
        self.clock = clock
        self.tick_interval = tick_interval

        self.running = False
        self._stop_event = threading.Event()
        self._tick_thread: Optional[threading.Thread] = None
        self._last_tick_key = None

        self.scheduled_fire_count = 0
        self.manual_request_count = 0

    @property
    def state(self) -> SchedulerState:
        if self.running and self.session_state.schedule.auto_enabled:
            return SchedulerState.ARMED_AUTOMATIC
        return SchedulerState.IDLE

    def should_fire(self, now: datetime) -> bool:
        schedule = self.session_state.schedule
        return (schedule.auto_enabled and
                now.hour == schedule.hour and
                now.minute == schedule.minute and
                now.second == 0)

    def tick(self, now: Optional[datetime] = None) -> bool:
        """Evaluate the rule for ``now``. Returns True if a capture was requested."""
        now = now or self.clock()

        # One evaluation per wall-clock second
        tick_key = now.replace(microsecond=0)
        if tick_key == self._last_tick_key:
            return False
        self._last_tick_key = tick_key

        if not self.should_fire(now):
            return False

        self.scheduled_fire_count += 1
        logger.info(f"Scheduled capture at {now.strftime('%H:%M:%S')} "
                    f"(target {self.session_state.schedule.target_time})")
        self.on_trigger(CaptureTrigger.SCHEDULED)
        return True

    def request_manual(self) -> bool:
        """Request a capture now, regardless of target time or auto flag."""
        self.manual_request_count += 1
        logger.info("Manual capture requested")
        return self.on_trigger(CaptureTrigger.MANUAL)

    def start(self) -> bool:
        if self.running:
            logger.warning("Scheduler is already running")
            return False

        self.running = True
        self._stop_event.clear()
        self._tick_thread = threading.Thread(
            target=self._tick_loop, name="capture-scheduler", daemon=True)
        self._tick_thread.start()
        logger.info(f"Capture scheduler started (target {self.session_state.schedule.target_time}, "
                    f"auto={'on' if self.session_state.schedule.auto_enabled else 'off'})")
        return True

    def stop(self) -> None:
        """Stop ticking. A capture already in flight is not affected."""
        if not self.running:
            return

        self.running = False
        self._stop_event.set()
        if self._tick_thread and self._tick_thread.is_alive():
            self._tick_thread.join(timeout=self.tick_interval * 2)
        self._tick_thread = None
        logger.info("Capture scheduler stopped")

    def _tick_loop(self) -> None:
        while self.running:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in scheduler tick: {e}", exc_info=True)

            # Sleep until the next second boundary so second 0 is not skipped
            now = self.clock()
            delay = self.tick_interval - (now.microsecond / 1_000_000) % self.tick_interval
            if self._stop_event.wait(delay):
                break
