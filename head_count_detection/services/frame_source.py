"""Frame sources: a local camera device and a remote image endpoint."""

import concurrent.futures
import threading
from datetime import datetime
from typing import Callable, Optional, Tuple

import cv2
import numpy as np
import requests

from .errors import AcquisitionTimeout, SourceUnavailable
from .interfaces import FrameSourceInterface
from ..config.defaults import CAMERA_SETTINGS
from ..models.config import CameraFacing, CameraSourceKind, FrameSourceConfig, SystemConfig
from ..models.detection import Frame
from ..logging_config import get_logger

logger = get_logger("frame_source")


def encode_jpeg(image, quality: int = CAMERA_SETTINGS["jpeg_quality"]) -> bytes:
    """Encode a decoded image as JPEG bytes."""
    ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return buffer.tobytes()


class LocalFrameSource(FrameSourceInterface):
    """Snapshots from a live local camera feed opened through OpenCV.

    ``acquire`` blocks until the device hands back a decoded frame, or raises
    AcquisitionTimeout after ``acquire_timeout`` seconds.
    """

    name = "local_camera"

    def __init__(self, device_index: int = 0,
                 facing: CameraFacing = CameraFacing.USER,
                 acquire_timeout: float = 5.0,
                 resolution: Tuple[int, int] = CAMERA_SETTINGS["resolution"],
                 clock: Callable[[], datetime] = datetime.now):
        self.device_index = device_index
        self.facing = facing
        self.acquire_timeout = acquire_timeout
        self.resolution = resolution
        self.clock = clock
        self.camera = None
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._pending_read: Optional[concurrent.futures.Future] = None
        self._lock = threading.Lock()

        logger.info(f"LocalFrameSource initialized - device: {device_index}, "
                    f"facing: {facing.value}, timeout: {acquire_timeout}s")

    def start(self) -> bool:
        """Open the camera device. Returns False if no feed could be opened."""
        with self._lock:
            if self.camera is not None:
                return True

            camera = cv2.VideoCapture(self.device_index)
            if not camera.isOpened():
                camera.release()
                logger.warning(f"Could not open local camera device {self.device_index}")
                return False

            camera.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
            camera.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])

            self.camera = camera
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="local-camera")

        logger.info(f"Local camera feed started on device {self.device_index}")
        return True

    def stop(self) -> None:
        with self._lock:
            camera, self.camera = self.camera, None
            executor, self._executor = self._executor, None
            self._pending_read = None

        if executor is not None:
            executor.shutdown(wait=False)
        if camera is not None:
            try:
                camera.release()
                logger.info("Local camera feed stopped")
            except cv2.error as e:
                logger.error(f"Error releasing camera: {e}")

    def is_available(self) -> bool:
        with self._lock:
            return self.camera is not None and self.camera.isOpened()

    def acquire(self) -> Frame:
        with self._lock:
            camera = self.camera
            executor = self._executor
            if camera is None or executor is None or not camera.isOpened():
                raise SourceUnavailable("No active video feed from the local camera")

            # A timed-out read keeps the device busy; never queue another behind it
            if self._pending_read is not None and not self._pending_read.done():
                raise AcquisitionTimeout("Local camera is still busy with a previous read")
            future = executor.submit(self._read_frame, camera)
            self._pending_read = future

        try:
            image = future.result(timeout=self.acquire_timeout)
        except concurrent.futures.TimeoutError:
            raise AcquisitionTimeout(
                f"Local camera did not deliver a frame within {self.acquire_timeout}s")

        try:
            encoded = encode_jpeg(image)
        except (ValueError, cv2.error) as e:
            raise SourceUnavailable(f"Local frame could not be encoded: {e}") from e

        return Frame(image=image, encoded=encoded, acquired_at=self.clock(), source=self.name)

    @staticmethod
    def _read_frame(camera):
        ok, image = camera.read()
        if not ok or image is None:
            raise SourceUnavailable("Local camera returned no frame")
        return image


class RemoteFrameSource(FrameSourceInterface):
    """The currently displayed image of a periodically refreshed remote endpoint.

    A background thread reloads the image every ``refresh_interval`` seconds.
    ``acquire`` never fetches: it returns whatever was loaded last, so the
    frame may be older than the call. A failed load is sticky until a later
    reload succeeds or the URL changes.
    """

    name = "remote_camera"

    def __init__(self, url: str = "",
                 refresh_interval: float = 1.0,
                 request_timeout: float = 10.0,
                 http_session: Optional[requests.Session] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self._url = url
        self.refresh_interval = refresh_interval
        self.request_timeout = request_timeout
        self.http = http_session or requests.Session()
        self.clock = clock

        self._lock = threading.Lock()
        self._displayed: Optional[Frame] = None
        self._load_error: Optional[str] = None

        self._stop_event = threading.Event()
        self._refresh_thread: Optional[threading.Thread] = None

        logger.info(f"RemoteFrameSource initialized - url: {url or '<unset>'}, "
                    f"refresh: {refresh_interval}s")

    @property
    def url(self) -> str:
        with self._lock:
            return self._url

    @property
    def load_error(self) -> Optional[str]:
        with self._lock:
            return self._load_error

    def set_url(self, url: str) -> None:
        """Point the source at a new endpoint, clearing the displayed image and any error."""
        with self._lock:
            if url == self._url:
                return
            self._url = url
            self._displayed = None
            self._load_error = None
        logger.info(f"Remote camera URL changed to {url or '<unset>'}")

    def start(self) -> bool:
        with self._lock:
            if self._refresh_thread is not None:
                return True

            # One stop event per loop
            self._stop_event = threading.Event()
            self._refresh_thread = threading.Thread(
                target=self._refresh_loop, args=(self._stop_event,),
                name="remote-camera-refresh", daemon=True)
            self._refresh_thread.start()
        logger.info("Remote camera refresh started")
        return True

    def stop(self) -> None:
        with self._lock:
            thread, self._refresh_thread = self._refresh_thread, None
            stop_event = self._stop_event

        stop_event.set()
        if thread is not None and thread.is_alive():
            thread.join(timeout=self.request_timeout + 1.0)
            if thread.is_alive():
                logger.warning("Remote camera refresh is still waiting on a request; "
                               "it exits when the request returns")
        logger.info("Remote camera refresh stopped")

    def is_available(self) -> bool:
        with self._lock:
            return bool(self._url) and self._load_error is None and self._displayed is not None

    def _refresh_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.refresh()
            if stop_event.wait(self.refresh_interval):
                break

    def refresh(self) -> bool:
        """Load the endpoint once. Returns True if a new image is displayed."""
        url = self.url
        if not url:
            return False

        try:
            response = self.http.get(url, timeout=self.request_timeout)
            response.raise_for_status()
            image = cv2.imdecode(np.frombuffer(response.content, dtype=np.uint8),
                                 cv2.IMREAD_COLOR)
            if image is None:
                raise ValueError("response is not a decodable image")
            encoded = encode_jpeg(image)
        except (requests.RequestException, ValueError, cv2.error) as e:
            with self._lock:
                if self._url != url:
                    return False
                first_failure = self._load_error is None
                self._load_error = str(e)
            if first_failure:
                logger.warning(f"Remote camera load failed for {url}: {e}")
            return False

        frame = Frame(image=image, encoded=encoded, acquired_at=self.clock(), source=self.name)
        with self._lock:
            if self._url != url:
                return False
            recovered = self._load_error is not None
            self._displayed = frame
            self._load_error = None

        if recovered:
            logger.info(f"Remote camera at {url} recovered")
        return True

    def acquire(self) -> Frame:
        with self._lock:
            url = self._url
            frame = self._displayed
            error = self._load_error

        if not url:
            raise SourceUnavailable("No remote camera URL configured")
        if error is not None:
            raise SourceUnavailable(f"Remote camera at {url} failed to load: {error}")
        if frame is None:
            raise SourceUnavailable(f"Remote camera at {url} has not loaded an image yet")
        return frame


def create_frame_source(kind: CameraSourceKind, source_config: FrameSourceConfig,
                        config: Optional[SystemConfig] = None) -> FrameSourceInterface:
    """Build the frame source variant for ``kind``."""
    config = config or SystemConfig()

    if kind is CameraSourceKind.LOCAL:
        facing = source_config.local_facing
        return LocalFrameSource(
            device_index=config.local_device_indices.get(facing.value, 0),
            facing=facing,
            acquire_timeout=config.local_acquire_timeout_seconds
        )

    return RemoteFrameSource(
        url=source_config.remote_url,
        refresh_interval=config.remote_refresh_interval_seconds,
        request_timeout=config.remote_request_timeout_seconds
    )
