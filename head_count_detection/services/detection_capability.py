"""COCO SSD object detector served through OpenCV DNN."""

import os
import threading
from typing import Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np

from .interfaces import DetectionCapabilityInterface
from ..config.defaults import COCO_LABELS, MODEL_SETTINGS
from ..models.config import ModelReadiness
from ..models.detection import BoundingBox, Detection
from ..logging_config import get_logger

logger = get_logger("detection_capability")


class CocoSsdDetector(DetectionCapabilityInterface):
    """Pretrained SSD MobileNet (COCO) detector.

    The network is loaded once, in the background, by ``load_async``.
    Readiness goes Loading -> Ready or Loading -> Failed exactly once and
    observers are notified of that single transition.
    """

    def __init__(self, model_path: str, config_path: str,
                 input_size: Tuple[int, int] = MODEL_SETTINGS["input_size"],
                 labels: Optional[Dict[int, str]] = None,
                 min_confidence: float = MODEL_SETTINGS["min_reported_confidence"],
                 max_detections: int = MODEL_SETTINGS["max_detections"]):
        self.model_path = model_path
        self.config_path = config_path
        self.input_size = tuple(input_size)
        self.labels = labels or COCO_LABELS
        self.min_confidence = min_confidence
        self.max_detections = max_detections

        self.net = None
        self.load_error: Optional[Exception] = None
        self._readiness = ModelReadiness.LOADING
        self._observers: List[Callable[[ModelReadiness], None]] = []
        self._state_lock = threading.Lock()
        self._inference_lock = threading.Lock()
        self._load_thread: Optional[threading.Thread] = None

    @property
    def readiness(self) -> ModelReadiness:
        with self._state_lock:
            return self._readiness

    def add_ready_observer(self, callback: Callable[[ModelReadiness], None]) -> None:
        """Register a readiness observer; called at once if loading already finished."""
        with self._state_lock:
            settled = self._readiness
            if settled is ModelReadiness.LOADING:
                self._observers.append(callback)
                return
        callback(settled)

    def load_async(self) -> threading.Thread:
        """Start loading the network on a background thread."""
        with self._state_lock:
            if self._load_thread is None:
                self._load_thread = threading.Thread(
                    target=self.load, name="model-loader", daemon=True)
                self._load_thread.start()
            return self._load_thread

    def load(self) -> ModelReadiness:
        """Load the network synchronously and settle readiness."""
        if self.readiness is not ModelReadiness.LOADING:
            return self.readiness

        logger.info(f"Loading detection model from {self.model_path}")
        try:
            for path in (self.model_path, self.config_path):
                if not os.path.exists(path):
                    raise FileNotFoundError(f"Model file not found: {path}")
            net = cv2.dnn.readNetFromTensorflow(self.model_path, self.config_path)
            if net.empty():
                raise ValueError(f"Failed to load network from {self.model_path}")
        except (OSError, ValueError, cv2.error) as e:
            logger.error(f"Failed to load detection model: {e}")
            self.load_error = e
            self._settle(ModelReadiness.FAILED)
            return ModelReadiness.FAILED

        self.net = net
        logger.info("Detection model loaded successfully")
        self._settle(ModelReadiness.READY)
        return ModelReadiness.READY

    def _settle(self, readiness: ModelReadiness) -> None:
        with self._state_lock:
            if self._readiness is not ModelReadiness.LOADING:
                return
            self._readiness = readiness
            observers, self._observers = self._observers, []

        for callback in observers:
            try:
                callback(readiness)
            except Exception as e:
                logger.error(f"Error in readiness observer: {e}", exc_info=True)

    def detect(self, image) -> List[Detection]:
        """Run the network on a BGR image.

        Returns at most ``max_detections`` objects scoring at least
        ``min_confidence``, highest score first.
        """
        if self.net is None:
            raise RuntimeError("Detection model is not loaded")

        height, width = image.shape[:2]
        blob = cv2.dnn.blobFromImage(image, size=self.input_size,
                                     swapRB=MODEL_SETTINGS["swap_rb"], crop=False)
        with self._inference_lock:
            self.net.setInput(blob)
            output = self.net.forward()

        return self._parse_output(output, width, height)

    def _parse_output(self, output, width: int, height: int) -> List[Detection]:
        # SSD output shape: (1, 1, N, 7) -> [image_id, class_id, score, x1, y1, x2, y2]
        detections = []
        for row in np.asarray(output).reshape(-1, 7):
            confidence = float(row[2])
            if confidence < self.min_confidence:
                continue

            class_id = int(row[1])
            x1, y1, x2, y2 = (np.clip(row[3:7], 0.0, 1.0) *
                              np.array([width, height, width, height])).astype(int)
            detections.append(Detection(
                label=self.labels.get(class_id, f"class_{class_id}"),
                confidence=confidence,
                box=BoundingBox(int(x1), int(y1), int(x2 - x1), int(y2 - y1))
            ))

        detections.sort(key=lambda d: d.confidence, reverse=True)
        detections = detections[:self.max_detections]
        logger.debug(f"Detector returned {len(detections)} objects")
        return detections
