"""Key identity listing refreshed from ``/api/status``."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .api import ApiClient
from .envelope import ResponseEnvelope
from .errors import MalformedEnvelopeError, TransportError
from .state import StatusKind, UIState

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StatusSnapshot:
    public_key_identities: Tuple[str, ...] = ()
    secret_key_identities: Tuple[str, ...] = ()

    @classmethod
    def from_envelope(cls, envelope: ResponseEnvelope) -> "StatusSnapshot":
        # The lists sit next to ``success`` rather than under ``data``.
        source = envelope.extra
        if isinstance(envelope.data, dict) and "public_keys" not in source:
            source = envelope.data
        return cls(
            public_key_identities=_identity_list(source.get("public_keys"), "public_keys"),
            secret_key_identities=_identity_list(source.get("secret_keys"), "secret_keys"),
        )


def _identity_list(value: Any, name: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise MalformedEnvelopeError(f"'{name}' is not a list of strings")
    return tuple(value)


class StatusPoller:
    """Fetch the current key identities and publish them on the UI state."""

    def __init__(self, api: ApiClient, state: UIState, path: str = "/api/status"):
        self._api = api
        self._state = state
        self._path = path

    async def refresh(self) -> Optional[StatusSnapshot]:
        """Replace both identity lists, or leave them untouched on any failure."""

        self._state.set_status(StatusKind.FETCHING, "Fetching status...")
        try:
            raw = await self._api.get(self._path)
        except TransportError as exc:
            log.warning("Error fetching status: %s", exc)
            self._state.set_status(StatusKind.UNREACHABLE, "Failed to connect")
            return None

        if not raw.ok:
            log.warning("Status request failed with HTTP %d", raw.status_code)
            self._state.set_status(StatusKind.UNREACHABLE, "Failed to connect")
            return None

        try:
            envelope = ResponseEnvelope.parse(raw.body)
            if not envelope.success:
                log.error("Status API error: %s", envelope.error)
                self._state.set_status(StatusKind.ERROR, "Error loading status")
                return None
            snapshot = StatusSnapshot.from_envelope(envelope)
        except MalformedEnvelopeError as exc:
            log.error("Status API returned a malformed response: %s", exc)
            self._state.set_status(StatusKind.ERROR, "Error loading status")
            return None

        self._state.replace_keys(
            snapshot.public_key_identities, snapshot.secret_key_identities
        )
        self._state.set_status(StatusKind.READY, "Ready")
        return snapshot


__all__ = ["StatusSnapshot", "StatusPoller"]
