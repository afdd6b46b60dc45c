"""Wiring of the client components around one shared :class:`UIState`."""
from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Optional

import httpx

from .api import ApiClient
from .classifier import ClassifiedPayload, PayloadDispatcher, ScanAction
from .config import ClientConfig, ScanSettings
from .decoders import CameraDecoder, decode_image_file
from .envelope import DisplayModel
from .errors import ScannerError
from .operations import OperationSubmitter, form_defaults, get_operation
from .scanner import DecoderFactory, ScanSessionController
from .state import UIState
from .status import StatusPoller

log = logging.getLogger(__name__)


class KeyConsole:
    """Facade used by the view; every method is safe to call from the event loop.

    ``transport`` and ``decoder_factory`` exist so tests can swap in an
    :class:`httpx.MockTransport` and an in-memory decoder.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        state: Optional[UIState] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        decoder_factory: Optional[DecoderFactory] = None,
        scan_settings: Optional[ScanSettings] = None,
    ):
        self.config = config or ClientConfig()
        self.state = state or UIState(forms=form_defaults())
        self.api = ApiClient(self.config, transport=transport)
        self.poller = StatusPoller(self.api, self.state, self.config.status_path)
        self.submitter = OperationSubmitter(self.api, self.state, self.poller)
        self.dispatcher = PayloadDispatcher(
            self.api, self.state, self.submitter, self.config.classify_path
        )
        self.scanner = ScanSessionController(
            self.state,
            decoder_factory or CameraDecoder,
            self.dispatcher.classify,
            scan_settings,
        )

    async def load(self) -> None:
        log.info("Connecting to key service at %s", self.api.base_url)
        await self.poller.refresh()

    async def submit_form(
        self, name: str, values: Optional[Mapping[str, object]] = None
    ) -> DisplayModel:
        """Store ``values`` in the named form, then submit the whole form."""

        get_operation(name)
        for field_name, value in (values or {}).items():
            self.state.set_form_value(name, field_name, value)
        return await self.submitter.submit_form(name)

    async def start_scan(self) -> bool:
        return await self.scanner.start()

    async def stop_scan(self) -> bool:
        return await self.scanner.stop()

    async def invoke_action(self, action: ScanAction) -> Optional[DisplayModel]:
        return await self.dispatcher.invoke(action)

    async def scan_image_file(self, path: str) -> Optional[ClassifiedPayload]:
        """Decode a QR code from an image file and classify it like a camera scan."""

        try:
            text = await asyncio.to_thread(decode_image_file, path)
        except ScannerError as exc:
            log.error("Cannot decode image files: %s", exc)
            self.state.set_scan_message(f"ERROR: {exc}")
            return None

        if text is None:
            self.state.notify_user("Failed to read QR from image")
            return None

        self.state.ensure_scan_session().last_decoded_text = text
        self.state.set_scan_message(f"Scan successful! Data length: {len(text)}")
        return await self.dispatcher.classify(text)

    async def aclose(self) -> None:
        await self.scanner.stop()
        await self.scanner.join()
        await self.api.aclose()


__all__ = ["KeyConsole"]
