"""Service interfaces and abstract base classes."""

from abc import ABC, abstractmethod
from typing import Callable, List

from ..models.config import ModelReadiness
from ..models.detection import Detection, Frame


class FrameSourceInterface(ABC):
    """Interface for a source of still frames."""

    #: Name used in logs and error records.
    name = "frame_source"

    @abstractmethod
    def start(self) -> None:
        """Open the underlying feed."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release the underlying feed."""
        pass

    @abstractmethod
    def acquire(self) -> Frame:
        """Return a frame or raise SourceUnavailable / AcquisitionTimeout."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether acquire() can currently succeed."""
        pass


class DetectionCapabilityInterface(ABC):
    """Interface for the object detector consumed by the capture controller."""

    @property
    @abstractmethod
    def readiness(self) -> ModelReadiness:
        """Current model readiness."""
        pass

    @abstractmethod
    def load_async(self):
        """Begin loading the model without blocking the caller."""
        pass

    @abstractmethod
    def add_ready_observer(self, callback: Callable[[ModelReadiness], None]) -> None:
        """Register a callback for the Loading -> Ready/Failed transition."""
        pass

    @abstractmethod
    def detect(self, image) -> List[Detection]:
        """Detect objects in a decoded image."""
        pass
