"""QR decoding from the system camera and from image files.

OpenCV and :mod:`pyzbar` are imported lazily so the rest of the package, and
its tests, work on machines without a camera stack.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, AsyncIterator, Callable, Optional

from .config import CameraConfig, ScanSettings
from .errors import ScannerError
from .scanner import DecodeAttempt, FrameDecoder

log = logging.getLogger(__name__)

FrameSink = Callable[[Any], None]


def _load_modules():
    try:
        import cv2  # type: ignore
        from pyzbar import pyzbar  # type: ignore
    except Exception as exc:
        raise ScannerError("Camera dependencies not installed (opencv-python, pyzbar)") from exc
    return cv2, pyzbar


def payload_text(data: bytes) -> str:
    """Return the decoded QR bytes as text; ASCII armour is plain UTF-8."""

    return data.decode("utf-8", errors="replace")


def decode_image(cv2, pyzbar, image) -> Optional[bytes]:
    """Try plain, blurred and Otsu-thresholded greyscale versions of ``image``."""

    if image.ndim == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    else:
        gray = image
    for processed in (
        gray,
        cv2.GaussianBlur(gray, (5, 5), 0),
        cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)[1],
    ):
        decoded = pyzbar.decode(processed)
        if decoded:
            return bytes(decoded[0].data)
    return None


def decode_image_file(path: str) -> Optional[str]:
    """Decode the first QR code found in the image at ``path``.

    Returns ``None`` when the file cannot be read or holds no QR code, and
    raises :class:`ScannerError` when the decoding libraries are missing.
    """

    cv2, pyzbar = _load_modules()
    image = cv2.imread(path)
    if image is None:
        log.warning("Could not read image file %s", path)
        return None

    data = decode_image(cv2, pyzbar, image)
    if data is None:
        return None
    return payload_text(data)


def crop_region(frame, width: int, height: int):
    """Return the centred ``width`` x ``height`` detection region of ``frame``."""

    frame_height, frame_width = frame.shape[:2]
    width = min(width, frame_width)
    height = min(height, frame_height)
    top = (frame_height - height) // 2
    left = (frame_width - width) // 2
    return frame[top : top + height, left : left + width]


class CameraDecoder(FrameDecoder):
    """:class:`FrameDecoder` backed by an OpenCV capture device.

    ``viewport`` receives every captured frame (already resized) so a view can
    show the preview; it is called from the event loop thread.

    ``VideoCapture`` is not thread safe, so opening, reading and releasing the
    device all run on one dedicated camera thread.  A release requested while
    a read is in flight waits for that read to return.
    """

    def __init__(
        self,
        camera_config: Optional[CameraConfig] = None,
        viewport: Optional[FrameSink] = None,
    ):
        self._camera_config = camera_config or CameraConfig()
        self._viewport = viewport
        self._settings = ScanSettings()
        self._capture = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._running = False
        self._cv2 = None
        self._pyzbar = None

    @property
    def is_scanning(self) -> bool:
        return self._running

    async def start(self, settings: ScanSettings) -> None:
        if self._running:
            return
        self._cv2, self._pyzbar = _load_modules()
        self._settings = settings

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera")
        try:
            capture = await self._on_camera(self._open_capture, settings.facing_mode)
        except Exception:
            self._shutdown_executor()
            raise
        if capture is None:
            self._shutdown_executor()
            raise ScannerError("Unable to access camera")

        self._capture = capture
        self._running = True
        log.info(
            "Camera opened (%d fps, %dx%d detection region, facing %s)",
            settings.fps,
            settings.qrbox_width,
            settings.qrbox_height,
            settings.facing_mode,
        )

    async def attempts(self) -> AsyncIterator[DecodeAttempt]:
        interval = self._settings.frame_interval
        while self._running and self._capture is not None:
            success, frame = await self._on_camera(self._capture.read)
            if not self._running:
                break
            if not success or frame is None:
                yield DecodeAttempt(reason="Camera feed unavailable")
                await asyncio.sleep(interval)
                continue

            frame = self._resize_frame(frame)
            if self._viewport is not None:
                self._viewport(frame)

            region = crop_region(
                frame, self._settings.qrbox_width, self._settings.qrbox_height
            )
            data = decode_image(self._cv2, self._pyzbar, region)
            if data is not None:
                yield DecodeAttempt(text=payload_text(data))
            else:
                yield DecodeAttempt(reason="No QR code found")
            await asyncio.sleep(interval)

    async def stop(self) -> None:
        self._running = False
        capture, self._capture = self._capture, None
        try:
            if capture is not None:
                await self._on_camera(capture.release)
        except Exception as exc:
            raise ScannerError(f"Could not release camera: {exc}") from exc
        finally:
            self._shutdown_executor()

    async def _on_camera(self, func, *args):
        if self._executor is None:
            raise ScannerError("Camera is not open")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def _shutdown_executor(self) -> None:
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    def _open_capture(self, facing_mode: str):
        assert self._cv2 is not None
        config = self._camera_config

        default_backend = getattr(self._cv2, "CAP_ANY", 0)
        for backend in config.get_backends() or [default_backend]:
            for index in config.get_indices(facing_mode):
                try:
                    capture = self._cv2.VideoCapture(index, backend)
                except TypeError:
                    capture = self._cv2.VideoCapture(index)
                if not capture or not capture.isOpened():
                    if capture:
                        capture.release()
                    continue

                capture.set(self._cv2.CAP_PROP_FRAME_WIDTH, config.width)
                capture.set(self._cv2.CAP_PROP_FRAME_HEIGHT, config.height)
                log.debug("Using camera index %d (backend %s)", index, backend)
                return capture
        return None

    def _resize_frame(self, frame):
        assert self._cv2 is not None
        max_dim = max(frame.shape[:2])
        limit = self._camera_config.max_frame_size
        if max_dim <= limit:
            return frame

        scale = limit / float(max_dim)
        new_size = (int(frame.shape[1] * scale), int(frame.shape[0] * scale))
        return self._cv2.resize(frame, new_size)


__all__ = [
    "CameraDecoder",
    "crop_region",
    "decode_image",
    "decode_image_file",
    "payload_text",
]
