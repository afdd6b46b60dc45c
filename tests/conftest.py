from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import parse_qsl

import httpx
import pytest

from pgp_qr_client.config import ClientConfig
from pgp_qr_client.console import KeyConsole
from pgp_qr_client.scanner import DecodeAttempt, FrameDecoder

STATUS_OK = {
    "success": True,
    "public_keys": ["alice@example.com", "bob@example.com"],
    "secret_keys": ["alice@example.com"],
}


class FakeService:
    """In-memory stand-in for the key service, served through ``MockTransport``."""

    def __init__(self) -> None:
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []
        self.route("/api/status", json=STATUS_OK)

    def route(
        self,
        path: str,
        *,
        status: int = 200,
        json: object = None,
        content: Optional[bytes] = None,
        error: Optional[str] = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if error is not None:
                raise httpx.ConnectError(error, request=request)
            if content is not None:
                return httpx.Response(status, content=content)
            return httpx.Response(status, json=json)

        self.routes[path] = respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        respond = self.routes.get(request.url.path)
        if respond is None:
            return httpx.Response(404, json={"success": False, "error": "Not found"})
        return respond(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def forms(self, path: str) -> List[List[tuple]]:
        return [
            parse_qsl(request.content.decode("ascii"), keep_blank_values=True)
            for request in self.requests
            if request.url.path == path
        ]


class FakeDecoder(FrameDecoder):
    """Decoder that replays scripted attempts and then waits to be stopped."""

    def __init__(
        self,
        attempts: Sequence[DecodeAttempt] = (),
        start_error: Optional[Exception] = None,
        stop_error: Optional[Exception] = None,
    ) -> None:
        self._scripted = list(attempts)
        self._start_error = start_error
        self._stop_error = stop_error
        self._running = False
        self._stopped = asyncio.Event()
        self.settings = None
        self.start_calls = 0
        self.stop_calls = 0

    @property
    def is_scanning(self) -> bool:
        return self._running

    async def start(self, settings) -> None:
        self.start_calls += 1
        self.settings = settings
        if self._start_error is not None:
            raise self._start_error
        self._running = True
        self._stopped.clear()

    async def attempts(self):
        for attempt in self._scripted:
            if not self._running:
                return
            await asyncio.sleep(0)
            yield attempt
        await self._stopped.wait()

    async def stop(self) -> None:
        self.stop_calls += 1
        if self._stop_error is not None:
            raise self._stop_error
        self._running = False
        self._stopped.set()


def form_of(request: httpx.Request) -> List[tuple]:
    return parse_qsl(request.content.decode("ascii"), keep_blank_values=True)


@pytest.fixture()
def service() -> FakeService:
    return FakeService()


@pytest.fixture()
def make_console(service: FakeService):
    """Build a :class:`KeyConsole` bound to ``service``; call inside a running loop."""

    def factory(decoder_factory=None) -> KeyConsole:
        return KeyConsole(
            ClientConfig(base_url="http://keys.test"),
            transport=service.transport(),
            decoder_factory=decoder_factory or FakeDecoder,
        )

    return factory
