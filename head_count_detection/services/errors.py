"""Capture error taxonomy."""


class CaptureError(Exception):
    """Base class for failures of a capture cycle."""

    #: Whether waiting and triggering again can succeed without user action.
    recoverable = True


class ModelNotReady(CaptureError):
    """The detection capability has not finished loading (or failed to load)."""


class SourceUnavailable(CaptureError):
    """No usable frame source: nothing configured, permission or network denial."""

    recoverable = False


class AcquisitionTimeout(CaptureError):
    """The local camera did not deliver a decoded frame in time."""


class DetectionFailed(CaptureError):
    """The detection capability raised during inference."""


class CaptureInFlight(CaptureError):
    """A capture cycle is already running; the new request was dropped."""


class ConfigurationError(ValueError):
    """Invalid value at the configuration input boundary."""
