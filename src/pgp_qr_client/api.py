"""HTTP transport for the key service JSON API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
from urllib.parse import urlencode

import httpx

from .config import ClientConfig
from .errors import TransportError

log = logging.getLogger(__name__)

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(slots=True, frozen=True)
class RawResult:
    """Status code and undecoded body of one HTTP exchange."""

    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class ApiClient:
    """Thin wrapper around :class:`httpx.AsyncClient`.

    Non-2xx responses are returned as they are; only failures to complete the
    exchange at all are raised, as :class:`TransportError`.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            transport=transport,
            timeout=config.request_timeout,
        )

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def get(self, path: str) -> RawResult:
        log.debug("GET %s", path)
        try:
            response = await self._client.get(path)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc
        return RawResult(response.status_code, response.content)

    async def post_form(self, path: str, fields: Iterable[Tuple[str, str]]) -> RawResult:
        """POST ``fields`` form-encoded, preserving their order."""

        body = urlencode(list(fields))
        log.debug("POST %s (%d bytes)", path, len(body))
        try:
            response = await self._client.post(
                path,
                content=body.encode("ascii"),
                headers={"Content-Type": _FORM_CONTENT_TYPE},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"POST {path} failed: {exc}") from exc
        return RawResult(response.status_code, response.content)

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["ApiClient", "RawResult"]
