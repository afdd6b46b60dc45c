"""Camera scan session lifecycle.

The decoder is modelled as a lazy stream of :class:`DecodeAttempt` items.  A
session takes the first attempt that carries text, hands it to the classifier
and stops the decoder; failed attempts only refresh the progress message.
"""
from __future__ import annotations

import abc
import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional, Set

from .config import ScanSettings
from .state import ScanState, UIState

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DecodeAttempt:
    """Outcome of decoding one frame: ``text`` on success, ``reason`` otherwise."""

    text: Optional[str] = None
    reason: str = ""

    @property
    def success(self) -> bool:
        return self.text is not None


class FrameDecoder(abc.ABC):
    """Interface of the camera engine driven by :class:`ScanSessionController`."""

    @property
    @abc.abstractmethod
    def is_scanning(self) -> bool:
        ...

    @abc.abstractmethod
    async def start(self, settings: ScanSettings) -> None:
        """Acquire the camera; raise :class:`ScannerError` when that is impossible."""

    @abc.abstractmethod
    def attempts(self) -> AsyncIterator[DecodeAttempt]:
        """Yield one attempt per processed frame until :meth:`stop` is called."""

    @abc.abstractmethod
    async def stop(self) -> None:
        """Release the camera; raise :class:`ScannerError` on failure."""


DecoderFactory = Callable[[], FrameDecoder]
DecodedCallback = Callable[[str], Awaitable[object]]


class ScanSessionController:
    """State machine over ``Idle -> Starting -> Scanning -> Stopping -> Idle``."""

    def __init__(
        self,
        state: UIState,
        decoder_factory: DecoderFactory,
        on_decoded: DecodedCallback,
        settings: Optional[ScanSettings] = None,
    ):
        self._state = state
        self._decoder_factory = decoder_factory
        self._on_decoded = on_decoded
        self._settings = settings or ScanSettings()
        self._decoder: Optional[FrameDecoder] = None
        self._consumer: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def scan_state(self) -> ScanState:
        if self._state.scan is None:
            return ScanState.IDLE
        return self._state.scan.state

    @property
    def decoder(self) -> Optional[FrameDecoder]:
        return self._decoder

    async def start(self) -> bool:
        """Start scanning; a request while a session is active is ignored."""

        if self.scan_state is not ScanState.IDLE:
            log.debug("Scan start ignored while %s", self.scan_state.value)
            return False

        self._state.set_scan_state(ScanState.STARTING)
        try:
            if self._decoder is None:
                self._decoder = self._decoder_factory()
            decoder = self._decoder
            await decoder.start(self._settings)
        except Exception as exc:
            log.error("Failed to start QR scanner: %s", exc)
            self._decoder = None
            self._state.set_scan_message(f"ERROR: Could not start scanner - {exc}")
            self._state.set_scan_state(ScanState.IDLE)
            return False

        self._state.set_scan_state(ScanState.SCANNING)
        self._state.set_scanner_active(True)
        self._state.set_scan_message("QR Scanner Started. Point camera at QR code.")
        self._consumer = asyncio.ensure_future(self._consume(decoder))
        return True

    async def _consume(self, decoder: FrameDecoder) -> None:
        try:
            async with aclosing(decoder.attempts()) as attempts:
                async for attempt in attempts:
                    if self.scan_state is not ScanState.SCANNING:
                        break
                    if not attempt.success:
                        self._state.set_scan_message(f"Scanning... ({attempt.reason})")
                        continue

                    text = attempt.text
                    log.info("QR code decoded (%d characters)", len(text))
                    self._state.ensure_scan_session().last_decoded_text = text
                    self._state.set_scan_message(
                        f"Scan successful! Data length: {len(text)}"
                    )
                    self._spawn(self._on_decoded(text))
                    break
        except Exception as exc:
            log.error("QR decoder failed: %s", exc)
            self._state.set_scan_message(f"ERROR: Scanner failed - {exc}")
        await self.stop()

    def _spawn(self, coro: Awaitable[object]) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Scanned payload handler failed", exc_info=task.exception())

    async def stop(self) -> bool:
        """End the session; a no-op unless a session is currently scanning.

        The decoder itself is only told to stop while it reports that it is
        running.  Whatever happens, the session ends up ``IDLE`` so that a
        later :meth:`start` is possible.
        """

        decoder = self._decoder
        if decoder is None or self.scan_state is not ScanState.SCANNING:
            return False

        self._state.set_scan_state(ScanState.STOPPING)
        consumer, self._consumer = self._consumer, None
        if consumer is not None and consumer is not asyncio.current_task():
            consumer.cancel()

        try:
            if decoder.is_scanning:
                await decoder.stop()
        except Exception as exc:
            log.error("Failed to stop QR scanner: %s", exc)
            self._state.set_scan_message("Failed to stop scanner.")
        else:
            log.info("QR code scanning stopped")
            self._state.set_scan_message("Scanner stopped.")
        finally:
            self._state.set_scanner_active(False)
            self._state.set_scan_state(ScanState.IDLE)
        return True

    async def join(self) -> None:
        """Wait for the frame consumer and any in-flight classification."""

        if self._consumer is not None:
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = [
    "DecodeAttempt",
    "FrameDecoder",
    "DecoderFactory",
    "ScanSessionController",
]
