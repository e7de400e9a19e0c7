"""Unit tests for the capture controller."""

import threading
import unittest
from datetime import datetime
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fakes import FakeDetector, FakeFrameSource, make_detection
from head_count_detection.capture_controller import CaptureController, count_persons
from head_count_detection.models.config import (
    CameraSourceKind, CaptureTrigger, ModelReadiness, ScheduleConfig
)
from head_count_detection.services.error_handler import ComponentStatus, ErrorHandler
from head_count_detection.services.errors import (
    AcquisitionTimeout, CaptureInFlight, DetectionFailed, ModelNotReady, SourceUnavailable
)
from head_count_detection.session_state import SessionState

CAPTURE_TIME = datetime(2024, 5, 6, 9, 0, 0)


class TestCountPersons(unittest.TestCase):
    """Test cases for person counting."""

    def test_only_person_label_counts(self):
        detections = [make_detection("person"), make_detection("person"), make_detection("chair")]
        self.assertEqual(count_persons(detections), 2)

    def test_low_confidence_person_still_counts(self):
        detections = [make_detection("person", 0.01), make_detection("Person", 0.99)]
        self.assertEqual(count_persons(detections), 1)

    def test_empty(self):
        self.assertEqual(count_persons([]), 0)


class TestCaptureController(unittest.TestCase):
    """Test cases for CaptureController."""

    def setUp(self):
        """Set up test fixtures."""
        self.state = SessionState(ScheduleConfig(9, 0, True))
        self.source = FakeFrameSource()
        self.detector = FakeDetector(detections=[
            make_detection("person"), make_detection("person"), make_detection("chair")
        ])
        self.error_handler = ErrorHandler()
        self.controller = CaptureController(
            self.state, self.detector, lambda: self.source,
            error_handler=self.error_handler,
            clock=lambda: CAPTURE_TIME,
            background=False
        )

    def test_run_capture_counts_people(self):
        """Two persons and a chair give a count of two."""
        outcome = self.controller.run_capture()

        self.assertEqual(outcome.person_count, 2)
        self.assertEqual(outcome.captured_at, CAPTURE_TIME)
        self.assertIs(outcome.frame_snapshot, self.source.frames[0])
        self.assertEqual(self.state.latest_outcome, outcome)
        self.assertEqual(outcome.summary(), "2 Students Detected")
        self.assertEqual(self.controller.capture_count, 1)

    def test_frame_published_before_detection(self):
        """The new frame is visible as analyzing while detection runs."""
        seen = {}

        def detect(image):
            outcome = self.state.latest_outcome
            seen["analyzing"] = outcome.analyzing
            seen["frame"] = outcome.frame_snapshot
            return [make_detection("person")]

        self.detector.detect = detect
        outcome = self.controller.run_capture()

        self.assertTrue(seen["analyzing"])
        self.assertIs(seen["frame"], outcome.frame_snapshot)
        self.assertEqual(outcome.person_count, 1)

    def test_model_not_ready_has_no_side_effects(self):
        """Loading model fails fast without touching source or state."""
        self.detector._readiness = ModelReadiness.LOADING
        events = []
        self.state.subscribe(lambda event, state: events.append(event))

        with self.assertRaises(ModelNotReady):
            self.controller.run_capture()

        self.assertEqual(self.source.acquire_calls, 0)
        self.assertIsNone(self.state.latest_outcome)
        self.assertEqual(events, [])

    def test_manual_trigger_while_loading_leaves_state_unchanged(self):
        self.detector._readiness = ModelReadiness.LOADING
        events = []
        self.state.subscribe(lambda event, state: events.append(event))

        accepted = self.controller.trigger(CaptureTrigger.MANUAL)

        self.assertFalse(accepted)
        self.assertEqual(self.source.acquire_calls, 0)
        self.assertIsNone(self.state.latest_outcome)
        self.assertIsNone(self.state.last_error)
        self.assertEqual(events, [])
        self.assertEqual(self.error_handler.get_last_error().error_type, "ModelNotReady")

    def test_failed_model_is_not_ready(self):
        self.detector._readiness = ModelReadiness.FAILED
        with self.assertRaises(ModelNotReady):
            self.controller.run_capture()

    def test_source_failure_keeps_previous_outcome(self):
        """A failed acquisition never erases a prior successful result."""
        previous = self.controller.run_capture()

        self.source.error = SourceUnavailable("no feed")
        with self.assertRaises(SourceUnavailable):
            self.controller.run_capture()

        self.assertIs(self.state.latest_outcome, previous)
        self.assertEqual(self.detector.detect_calls, 1)

    def test_trigger_converts_source_failure_to_error_record(self):
        previous = self.controller.run_capture()
        self.source.error = AcquisitionTimeout("slow camera")

        accepted = self.controller.trigger(CaptureTrigger.SCHEDULED)

        self.assertTrue(accepted)
        self.assertIs(self.state.latest_outcome, previous)
        self.assertEqual(self.state.last_error.error_type, "AcquisitionTimeout")
        self.assertEqual(self.controller.failure_count, 1)
        self.assertFalse(self.controller.in_flight)

    def test_source_unavailable_degrades_component(self):
        self.source.error = SourceUnavailable("no url")
        self.controller.trigger()

        health = self.error_handler.get_component_health()
        self.assertEqual(health["capture_controller"], ComponentStatus.DEGRADED)

        self.source.error = None
        self.controller.trigger()
        health = self.error_handler.get_component_health()
        self.assertEqual(health["capture_controller"], ComponentStatus.HEALTHY)
        self.assertIsNone(self.state.last_error)

    def test_unexpected_source_error_is_source_unavailable(self):
        self.source.error = OSError("device vanished")
        with self.assertRaises(SourceUnavailable) as ctx:
            self.controller.run_capture()
        self.assertIsInstance(ctx.exception.__cause__, OSError)

    def test_detection_failure_leaves_count_unset(self):
        """After detection fails the new frame stays in the analyzing state."""
        self.detector.error = RuntimeError("inference crashed")

        with self.assertRaises(DetectionFailed):
            self.controller.run_capture()

        outcome = self.state.latest_outcome
        self.assertIsNotNone(outcome)
        self.assertIsNone(outcome.person_count)
        self.assertEqual(outcome.summary(), "Analyzing...")

    def test_detection_failure_is_not_retried(self):
        self.detector.error = RuntimeError("inference crashed")

        self.controller.trigger()

        self.assertEqual(self.detector.detect_calls, 1)
        self.assertEqual(self.state.last_error.error_type, "DetectionFailed")
        self.assertTrue(self.state.latest_outcome.analyzing)

    def test_new_frame_does_not_show_previous_error(self):
        self.detector.error = RuntimeError("inference crashed")
        self.controller.trigger()
        self.assertEqual(self.state.last_error.error_type, "DetectionFailed")

        errors_on_new_frame = []
        self.state.subscribe(lambda event, state: errors_on_new_frame.append(state.last_error)
                             if event == "frame_published" else None)

        self.detector.error = None
        self.controller.trigger()

        self.assertEqual(errors_on_new_frame, [None])
        self.assertIsNone(self.state.last_error)


class TestCaptureControllerConcurrency(unittest.TestCase):
    """In-flight guard behaviour with background cycles."""

    def setUp(self):
        self.state = SessionState(ScheduleConfig(9, 0, True))
        self.sources = {
            CameraSourceKind.LOCAL: FakeFrameSource("local_camera"),
            CameraSourceKind.REMOTE: FakeFrameSource("remote_camera"),
        }
        self.detector = FakeDetector(detections=[make_detection("person")])
        self.detector.gate = threading.Event()
        self.controller = CaptureController(
            self.state, self.detector,
            lambda: self.sources[self.state.source_kind],
            clock=lambda: CAPTURE_TIME
        )

    def tearDown(self):
        self.detector.gate.set()
        self.controller.wait_idle(5.0)

    def test_trigger_while_in_flight_is_dropped(self):
        """Overlapping requests are dropped, never queued."""
        self.assertTrue(self.controller.trigger(CaptureTrigger.SCHEDULED))
        self.assertTrue(self.detector.entered.wait(5.0))
        self.assertTrue(self.controller.in_flight)

        self.assertFalse(self.controller.trigger(CaptureTrigger.MANUAL))
        self.assertFalse(self.controller.trigger(CaptureTrigger.SCHEDULED))
        with self.assertRaises(CaptureInFlight):
            self.controller.run_capture()

        self.detector.gate.set()
        self.assertTrue(self.controller.wait_idle(5.0))

        self.assertEqual(self.sources[CameraSourceKind.LOCAL].acquire_calls, 1)
        self.assertEqual(self.detector.detect_calls, 1)
        self.assertEqual(self.controller.dropped_count, 2)
        self.assertEqual(self.state.latest_outcome.person_count, 1)
        self.assertFalse(self.controller.in_flight)

    def test_dropped_count_under_concurrent_triggers(self):
        self.assertTrue(self.controller.trigger())
        self.assertTrue(self.detector.entered.wait(5.0))

        def spam():
            for _ in range(200):
                self.controller.trigger()

        threads = [threading.Thread(target=spam) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10.0)

        self.detector.gate.set()
        self.assertTrue(self.controller.wait_idle(5.0))
        self.assertEqual(self.controller.dropped_count, 1600)
        self.assertEqual(self.controller.capture_count, 1)

    def test_trigger_accepted_again_after_completion(self):
        self.detector.gate.set()
        self.assertTrue(self.controller.trigger())
        self.assertTrue(self.controller.wait_idle(5.0))
        self.assertTrue(self.controller.trigger())
        self.assertTrue(self.controller.wait_idle(5.0))

        self.assertEqual(self.detector.detect_calls, 2)
        self.assertEqual(self.controller.dropped_count, 0)

    def test_source_switch_only_affects_next_capture(self):
        """Switching the source mid-cycle does not touch the running capture."""
        self.assertTrue(self.controller.trigger())
        self.assertTrue(self.detector.entered.wait(5.0))

        self.state.set_source_kind(CameraSourceKind.REMOTE)
        self.detector.gate.set()
        self.assertTrue(self.controller.wait_idle(5.0))

        first = self.state.latest_outcome
        self.assertEqual(first.frame_snapshot.source, "local_camera")
        self.assertEqual(first.person_count, 1)

        self.assertTrue(self.controller.trigger())
        self.assertTrue(self.controller.wait_idle(5.0))
        self.assertEqual(self.state.latest_outcome.frame_snapshot.source, "remote_camera")
        self.assertEqual(self.sources[CameraSourceKind.LOCAL].acquire_calls, 1)
        self.assertEqual(self.sources[CameraSourceKind.REMOTE].acquire_calls, 1)


if __name__ == '__main__':
    unittest.main()
