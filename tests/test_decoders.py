from __future__ import annotations

import asyncio
import sys
import threading
import time
import types

import pytest

from pgp_qr_client.config import CameraConfig, ScanSettings
from pgp_qr_client.decoders import CameraDecoder, crop_region, decode_image_file
from pgp_qr_client.errors import ScannerError
from pgp_qr_client.scanner import ScanSessionController
from pgp_qr_client.state import ScanState, UIState


class FakeFrame:
    ndim = 3

    def __init__(self, label: str, shape=(480, 640, 3)):
        self.label = label
        self.shape = shape
        self.slices = None

    def __getitem__(self, key):
        region = FakeFrame(self.label, (250, 250, 3))
        region.slices = key
        return region


class FakeCapture:
    def __init__(self, frames, opened: bool = True):
        self.frames = list(frames)
        self.opened = opened
        self.released = False
        self.props = {}

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


def _fake_cv2(image=None, captures=None):
    opened = []

    def video_capture(index, backend=None):
        opened.append(index)
        return (captures or {}).get(index, FakeCapture([], opened=False))

    module = types.SimpleNamespace(
        COLOR_BGR2GRAY=6,
        THRESH_BINARY=0,
        THRESH_OTSU=8,
        CAP_ANY=0,
        CAP_PROP_FRAME_WIDTH=3,
        CAP_PROP_FRAME_HEIGHT=4,
        imread=lambda _path: image,
        cvtColor=lambda img, _code: img,
        GaussianBlur=lambda img, _kernel, _sigma: FakeFrame(f"blur:{img.label}"),
        threshold=lambda img, *_args: (0, FakeFrame(f"otsu:{img.label}")),
        VideoCapture=video_capture,
        opened=opened,
    )
    return module


def _install(monkeypatch, cv2_module, readable=("qr",)):
    def decode(image):
        if image.label in readable:
            return [types.SimpleNamespace(data=b"-----BEGIN PGP MESSAGE-----")]
        return []

    pyzbar_module = types.SimpleNamespace(decode=decode)
    monkeypatch.setitem(sys.modules, "cv2", cv2_module)
    monkeypatch.setitem(sys.modules, "pyzbar", types.SimpleNamespace(pyzbar=pyzbar_module))
    monkeypatch.setitem(sys.modules, "pyzbar.pyzbar", pyzbar_module)


def test_crop_region_is_centred():
    frame = FakeFrame("qr")

    region = crop_region(frame, 250, 250)

    assert region.slices == (slice(115, 365), slice(195, 445))


def test_crop_region_is_clamped_to_frame():
    frame = FakeFrame("qr", shape=(200, 300, 3))

    region = crop_region(frame, 250, 250)

    assert region.slices == (slice(0, 200), slice(25, 275))


def test_decode_image_file_returns_text(monkeypatch):
    _install(monkeypatch, _fake_cv2(image=FakeFrame("qr")))

    assert decode_image_file("scan.png") == "-----BEGIN PGP MESSAGE-----"


def test_decode_image_file_retries_with_threshold(monkeypatch):
    _install(monkeypatch, _fake_cv2(image=FakeFrame("faint")), readable=("otsu:faint",))

    assert decode_image_file("scan.png") == "-----BEGIN PGP MESSAGE-----"


def test_decode_image_file_without_qr_returns_none(monkeypatch):
    _install(monkeypatch, _fake_cv2(image=FakeFrame("blank")), readable=())

    assert decode_image_file("scan.png") is None


def test_decode_image_file_with_unreadable_file_returns_none(monkeypatch):
    _install(monkeypatch, _fake_cv2(image=None))

    assert decode_image_file("missing.png") is None


def test_missing_dependencies_raise_scanner_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "cv2", None)

    with pytest.raises(ScannerError):
        decode_image_file("scan.png")


def test_camera_decoder_yields_until_first_code(monkeypatch):
    capture = FakeCapture([FakeFrame("blank"), FakeFrame("qr")])
    cv2_module = _fake_cv2(captures={2: capture})
    _install(monkeypatch, cv2_module)
    previews = []

    async def scenario():
        decoder = CameraDecoder(CameraConfig(), viewport=previews.append)
        await decoder.start(ScanSettings(fps=1000))
        scanning = decoder.is_scanning
        attempts = []
        async for attempt in decoder.attempts():
            attempts.append(attempt)
            if attempt.success:
                break
        await decoder.stop()
        return scanning, attempts, decoder.is_scanning

    scanning, attempts, after_stop = asyncio.run(scenario())

    assert scanning is True
    assert [attempt.success for attempt in attempts] == [False, True]
    assert attempts[0].reason == "No QR code found"
    assert attempts[1].text == "-----BEGIN PGP MESSAGE-----"
    assert len(previews) == 2
    assert capture.released is True
    assert capture.props == {3: 640, 4: 480}
    assert after_stop is False
    assert cv2_module.opened == [2]


def test_camera_decoder_tries_every_index_before_failing(monkeypatch):
    cv2_module = _fake_cv2()
    _install(monkeypatch, cv2_module)

    async def scenario():
        decoder = CameraDecoder(CameraConfig())
        await decoder.start(ScanSettings(facing_mode="user"))

    with pytest.raises(ScannerError, match="Unable to access camera"):
        asyncio.run(scenario())

    assert cv2_module.opened == [0, 1, 2]


def test_environment_facing_prefers_last_index():
    assert CameraConfig().get_indices("environment") == [2, 1, 0]
    assert CameraConfig().get_indices("user") == [0, 1, 2]


class SlowCapture(FakeCapture):
    def __init__(self, delay: float = 0.3):
        super().__init__([])
        self.delay = delay
        self.reading = False
        self.release_during_read = []
        self.threads = set()

    def read(self):
        self.threads.add(threading.get_ident())
        self.reading = True
        time.sleep(self.delay)
        self.reading = False
        return False, None

    def release(self):
        self.threads.add(threading.get_ident())
        self.release_during_read.append(self.reading)
        super().release()


def test_stop_waits_for_in_flight_read_before_release(monkeypatch):
    capture = SlowCapture()
    _install(monkeypatch, _fake_cv2(captures={2: capture}))
    state = UIState()

    async def on_decoded(_text):
        return None

    async def scenario():
        controller = ScanSessionController(
            state, lambda: CameraDecoder(CameraConfig()), on_decoded
        )
        await controller.start()
        await asyncio.sleep(0.05)
        stopped = await controller.stop()
        await controller.join()
        return stopped

    stopped = asyncio.run(scenario())

    assert stopped is True
    assert capture.released is True
    assert capture.release_during_read == [False]
    assert len(capture.threads) == 1
    assert state.scan.state is ScanState.IDLE
    assert state.scan_message == "Scanner stopped."
