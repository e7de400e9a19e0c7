"""Frame and detection data models."""

import base64
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

PERSON_LABEL = "person"


@dataclass(frozen=True)
class BoundingBox:
    """Represents a bounding box around a detected object."""
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class Detection:
    """Single entry of a detection result."""
    label: str
    confidence: float
    box: BoundingBox

    @property
    def is_person(self) -> bool:
        return self.label == PERSON_LABEL


@dataclass(frozen=True)
class Frame:
    """A still image taken from a frame source.

    ``image`` is the decoded pixel array handed to the detector, ``encoded``
    the JPEG bytes kept for display.
    """
    image: Any
    encoded: bytes
    acquired_at: datetime
    source: str = ""

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])

    def to_data_url(self) -> str:
        """Return the snapshot as a ``data:image/jpeg`` URL."""
        return "data:image/jpeg;base64," + base64.b64encode(self.encoded).decode("ascii")


@dataclass(frozen=True)
class CaptureOutcome:
    """Latest result of a capture cycle.

    ``person_count`` is None while detection for ``frame_snapshot`` is still
    running, or after detection failed for it.
    """
    captured_at: datetime
    frame_snapshot: Frame
    person_count: Optional[int] = None

    @property
    def analyzing(self) -> bool:
        return self.person_count is None

    @property
    def captured_at_display(self) -> str:
        return self.captured_at.strftime("%H:%M:%S")

    def summary(self) -> str:
        if self.person_count is None:
            return "Analyzing..."
        return f"{self.person_count} Students Detected"
