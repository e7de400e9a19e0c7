"""Unit tests for the error handler."""

import unittest
from datetime import datetime, timedelta
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from head_count_detection.services.error_handler import (
    ComponentStatus, ErrorHandler, ErrorSeverity
)
from head_count_detection.services.errors import DetectionFailed, SourceUnavailable


class TestErrorHandler(unittest.TestCase):
    """Test cases for ErrorHandler."""

    def setUp(self):
        self.handler = ErrorHandler(max_records=5)
        self.handler.register_component("capture_controller")

    def test_register_component(self):
        health = self.handler.get_component_health()
        self.assertEqual(health["capture_controller"], ComponentStatus.HEALTHY)
        self.assertEqual(self.handler.get_error_stats()["component_error_counts"]["capture_controller"], 0)

    def test_handle_error_records(self):
        error = SourceUnavailable("no url")
        record = self.handler.handle_error("capture_controller", error, ErrorSeverity.HIGH)

        self.assertIs(record.error, error)
        self.assertEqual(record.error_type, "SourceUnavailable")
        self.assertIs(self.handler.get_last_error(), record)
        self.assertEqual(self.handler.get_component_health()["capture_controller"],
                         ComponentStatus.DEGRADED)
        self.assertEqual(record.to_dict()["message"], "no url")
        self.assertEqual(record.to_dict()["severity"], "high")

    def test_record_reports_recoverability(self):
        unavailable = self.handler.handle_error("capture_controller", SourceUnavailable("no url"),
                                                ErrorSeverity.HIGH)
        failed = self.handler.handle_error("capture_controller", DetectionFailed("boom"),
                                           ErrorSeverity.MEDIUM)
        unexpected = self.handler.handle_error("capture_controller", KeyError("frame"),
                                               ErrorSeverity.HIGH)

        self.assertFalse(unavailable.to_dict()["recoverable"])
        self.assertTrue(failed.to_dict()["recoverable"])
        self.assertFalse(unexpected.to_dict()["recoverable"])

    def test_severity_to_status(self):
        self.handler.handle_error("capture_controller", DetectionFailed("x"), ErrorSeverity.MEDIUM)
        self.assertEqual(self.handler.get_component_health()["capture_controller"],
                         ComponentStatus.HEALTHY)

        self.handler.handle_error("capture_controller", DetectionFailed("x"), ErrorSeverity.CRITICAL)
        self.assertEqual(self.handler.get_component_health()["capture_controller"],
                         ComponentStatus.FAILED)

        self.handler.mark_healthy("capture_controller")
        self.assertEqual(self.handler.get_component_health()["capture_controller"],
                         ComponentStatus.HEALTHY)

    def test_traceback_captured(self):
        try:
            raise DetectionFailed("boom")
        except DetectionFailed as e:
            record = self.handler.handle_error("capture_controller", e, ErrorSeverity.MEDIUM)
        self.assertIn("DetectionFailed: boom", record.traceback_str)

    def test_records_are_bounded(self):
        for i in range(8):
            self.handler.handle_error("capture_controller", DetectionFailed(str(i)), ErrorSeverity.LOW)

        stats = self.handler.get_error_stats()
        self.assertEqual(stats["total_errors"], 5)
        self.assertEqual(stats["component_error_counts"]["capture_controller"], 8)
        self.assertEqual(str(self.handler.get_last_error().error), "7")

    def test_last_error_by_component(self):
        self.handler.handle_error("frame_source", SourceUnavailable("a"), ErrorSeverity.HIGH)
        self.handler.handle_error("capture_controller", DetectionFailed("b"), ErrorSeverity.MEDIUM)

        self.assertEqual(str(self.handler.get_last_error("frame_source").error), "a")
        self.assertIsNone(self.handler.get_last_error("web_app"))

    def test_error_summary(self):
        self.handler.handle_error("capture_controller", SourceUnavailable("a"), ErrorSeverity.HIGH)
        self.handler.handle_error("capture_controller", DetectionFailed("b"), ErrorSeverity.MEDIUM)
        old = self.handler.handle_error("capture_controller", DetectionFailed("c"), ErrorSeverity.MEDIUM)
        old.timestamp = datetime.now() - timedelta(hours=48)

        summary = self.handler.get_error_summary(hours=24)
        self.assertEqual(summary["total_errors"], 2)
        self.assertEqual(summary["type_counts"], {"SourceUnavailable": 1, "DetectionFailed": 1})
        self.assertEqual(summary["severity_counts"]["high"], 1)
        self.assertEqual(summary["severity_counts"]["medium"], 1)

    def test_reset_error_counts(self):
        self.handler.handle_error("capture_controller", DetectionFailed("x"), ErrorSeverity.LOW)
        self.handler.reset_error_counts("capture_controller")
        self.assertEqual(self.handler.get_error_stats()["component_error_counts"]["capture_controller"], 0)


if __name__ == '__main__':
    unittest.main()
