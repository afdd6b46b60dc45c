"""Classification of scanned payloads and the follow-up actions they enable."""
from __future__ import annotations

import enum
import hashlib
import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from .api import ApiClient
from .envelope import ResponseEnvelope
from .errors import MalformedEnvelopeError, TransportError
from .operations import OperationSubmitter, get_operation
from .state import UIState

log = logging.getLogger(__name__)


class PayloadCategory(enum.Enum):
    PUBLIC_KEY = "PGP Public Key"
    ENCRYPTED_MESSAGE = "PGP Encrypted Message"
    SIGNED_MESSAGE = "PGP Signed Message"
    DETACHED_SIGNATURE = "PGP Detached Signature"
    UNKNOWN = "Unknown"
    FAILED = "Analysis Failed"

    @classmethod
    def from_wire(cls, data_type: object) -> "PayloadCategory":
        """Map the server's ``data_type`` string; anything unrecognised is UNKNOWN."""

        for category in _KNOWN_CATEGORIES:
            if data_type == category.value:
                return category
        return cls.UNKNOWN


_KNOWN_CATEGORIES = (
    PayloadCategory.PUBLIC_KEY,
    PayloadCategory.ENCRYPTED_MESSAGE,
    PayloadCategory.SIGNED_MESSAGE,
    PayloadCategory.DETACHED_SIGNATURE,
)


class ScanAction(enum.Enum):
    """An action offered for a scanned payload: (operation, prefilled input)."""

    IMPORT_KEY = ("import", "key_data")
    DECRYPT_MESSAGE = ("decrypt", "ciphertext")
    VERIFY_MESSAGE = ("verify", "signed_data")

    def __init__(self, operation: str, field_name: str):
        self.operation = operation
        self.field_name = field_name


_ACTIONS_BY_CATEGORY = {
    PayloadCategory.PUBLIC_KEY: frozenset({ScanAction.IMPORT_KEY}),
    PayloadCategory.ENCRYPTED_MESSAGE: frozenset({ScanAction.DECRYPT_MESSAGE}),
    PayloadCategory.SIGNED_MESSAGE: frozenset({ScanAction.VERIFY_MESSAGE}),
    PayloadCategory.DETACHED_SIGNATURE: frozenset({ScanAction.VERIFY_MESSAGE}),
}


def actions_for(category: Optional[PayloadCategory]) -> FrozenSet[ScanAction]:
    return _ACTIONS_BY_CATEGORY.get(category, frozenset())


def payload_digest(text: str) -> str:
    """SHA-256 of the scanned text, for comparing against the sending device."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(slots=True, frozen=True)
class ClassifiedPayload:
    raw_text: str
    category: PayloadCategory
    label: str
    error: Optional[str] = None

    @property
    def actions(self) -> FrozenSet[ScanAction]:
        return actions_for(self.category)

    @property
    def digest(self) -> str:
        return payload_digest(self.raw_text)

    @classmethod
    def pending(cls, raw_text: str) -> "ClassifiedPayload":
        return cls(raw_text, PayloadCategory.UNKNOWN, "Analyzing...")

    @classmethod
    def failed(cls, raw_text: str, error: str) -> "ClassifiedPayload":
        return cls(raw_text, PayloadCategory.FAILED, PayloadCategory.FAILED.value, error)


class PayloadDispatcher:
    """Ask the service what a scanned text is and run the matching operation."""

    def __init__(
        self,
        api: ApiClient,
        state: UIState,
        submitter: OperationSubmitter,
        path: str = "/api/process_qr_data",
    ):
        self._api = api
        self._state = state
        self._submitter = submitter
        self._path = path

    async def classify(self, raw_text: str) -> ClassifiedPayload:
        # Hide every action until the new answer arrives.
        self._state.set_classified(ClassifiedPayload.pending(raw_text))
        try:
            raw = await self._api.post_form(self._path, [("scanned_data", raw_text)])
            envelope = ResponseEnvelope.parse(raw.body)
        except TransportError as exc:
            log.warning("Error processing scanned data: %s", exc)
            payload = ClassifiedPayload.failed(raw_text, f"Failed to process: {exc}")
        except MalformedEnvelopeError as exc:
            log.warning("Classification returned a malformed response: %s", exc)
            payload = ClassifiedPayload.failed(raw_text, str(exc))
        else:
            payload = self._from_envelope(raw_text, envelope)

        log.info("Scanned payload classified as %s", payload.category.name)
        self._state.set_classified(payload)
        return payload

    @staticmethod
    def _from_envelope(raw_text: str, envelope: ResponseEnvelope) -> ClassifiedPayload:
        if not envelope.success or not envelope.data:
            return ClassifiedPayload.failed(raw_text, envelope.error or "Unknown")

        data_type = None
        if isinstance(envelope.data, dict):
            data_type = envelope.data.get("data_type")
        label = data_type if isinstance(data_type, str) and data_type else "Unknown"
        return ClassifiedPayload(raw_text, PayloadCategory.from_wire(data_type), label)

    async def invoke(self, action: ScanAction):
        """Prefill the action's form with the scanned text and submit it.

        Returns the finished :class:`DisplayModel`, or ``None`` when the action
        was refused.
        """

        payload = self._state.classified
        if payload is None or not payload.raw_text:
            self._state.notify_user(f"No scanned data available to {action.operation}.")
            return None
        if action not in payload.actions:
            self._state.notify_user(
                f"The scanned data cannot be used to {action.operation}."
            )
            return None

        descriptor = get_operation(action.operation)
        self._state.set_form_value(descriptor.name, action.field_name, payload.raw_text)
        return await self._submitter.submit_form(descriptor.name)


__all__ = [
    "PayloadCategory",
    "ScanAction",
    "actions_for",
    "payload_digest",
    "ClassifiedPayload",
    "PayloadDispatcher",
]
