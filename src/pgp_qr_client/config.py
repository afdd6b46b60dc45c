"""Configuration data structures for the PGP QR client."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


@dataclass(slots=True)
class ClientConfig:
    """Static configuration options used across the application."""

    app_name: str = "PGPQRClient"
    app_version: str = "1.0"
    base_url: str = "http://127.0.0.1:3000"
    status_path: str = "/api/status"
    classify_path: str = "/api/process_qr_data"
    request_timeout: Optional[float] = None
    log_level: str = "INFO"


@dataclass(slots=True, frozen=True)
class ScanSettings:
    """Fixed parameters handed to a decoder when a scan session starts."""

    fps: int = 10
    qrbox_width: int = 250
    qrbox_height: int = 250
    facing_mode: str = "environment"

    @property
    def frame_interval(self) -> float:
        return 1.0 / max(1, self.fps)


@dataclass(slots=True)
class CameraConfig:
    """Runtime camera configuration used by :class:`CameraDecoder`."""

    width: int = 640
    height: int = 480
    max_frame_size: int = 1_920

    def get_backends(self) -> List[int]:
        """Return a list of OpenCV backend identifiers to try.

        OpenCV is optional.  The function therefore performs the imports lazily
        so that unit tests can run in environments without the optional
        dependencies installed.
        """

        try:  # pragma: no cover - imported for type side effect only
            import cv2  # type: ignore
        except Exception:  # pragma: no cover - we simply fall back to an empty list
            return []

        try:
            return [cv2.CAP_DSHOW, cv2.CAP_MSMF, cv2.CAP_ANY]
        except AttributeError:  # pragma: no cover - depends on the OpenCV build
            return [0]

    def get_indices(self, facing_mode: str = "user") -> List[int]:
        """Return candidate camera indices, rear cameras first for ``environment``.

        Built-in front cameras usually enumerate first, so the environment
        preference simply walks the list backwards.
        """

        indices = [0, 1, 2]
        if facing_mode == "environment":
            indices.reverse()
        return indices


@dataclass(slots=True)
class StyleConfig:
    """Simple grouping of UI styling constants."""

    bg_primary: str = "#2E3440"
    bg_secondary: str = "#3B4252"
    bg_tertiary: str = "#434C5E"
    fg_primary: str = "#D8DEE9"
    fg_secondary: str = "#ECEFF4"
    accent_primary: str = "#88C0D0"
    accent_secondary: str = "#5E81AC"
    warning: str = "#BF616A"
    success: str = "#A3BE8C"
    border: str = "#4C566A"
    font_family: str = "Segoe UI, sans-serif"
    font_size: int = 14
    font_mono: str = "Courier New, monospace"


__all__ = ["ClientConfig", "ScanSettings", "CameraConfig", "StyleConfig"]
