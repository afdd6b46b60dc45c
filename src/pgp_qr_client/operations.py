"""Form-backed operations on the key service and the generic submit pipeline."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from .api import ApiClient
from .envelope import DisplayModel, interpret
from .errors import TransportError
from .state import StatusKind, UIState
from .status import StatusPoller

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class OperationDescriptor:
    name: str
    endpoint_path: str
    input_field_names: Tuple[str, ...]


OPERATIONS: Mapping[str, OperationDescriptor] = MappingProxyType(
    {
        descriptor.name: descriptor
        for descriptor in (
            OperationDescriptor("export", "/api/export_key", ("key_id", "secret")),
            OperationDescriptor("import", "/api/import_key", ("key_data",)),
            OperationDescriptor("encrypt", "/api/encrypt", ("recipients", "plaintext")),
            OperationDescriptor("decrypt", "/api/decrypt", ("ciphertext",)),
            OperationDescriptor(
                "sign", "/api/sign", ("signer_key_id", "plaintext", "sign_mode")
            ),
            OperationDescriptor("verify", "/api/verify", ("signed_data",)),
        )
    }
)


def get_operation(name: str) -> OperationDescriptor:
    try:
        return OPERATIONS[name]
    except KeyError as exc:
        raise ValueError(f"Unknown operation: {name}") from exc


def encode_inputs(
    descriptor: OperationDescriptor, form_inputs: Mapping[str, object]
) -> List[Tuple[str, str]]:
    """Return the declared inputs as ordered form fields.

    Unset values and unchecked boxes are left out, the way a browser omits
    them from a submitted form.
    """

    fields: List[Tuple[str, str]] = []
    for name in descriptor.input_field_names:
        value = form_inputs.get(name)
        if value is None or value is False:
            continue
        if value is True:
            value = "true"
        fields.append((name, str(value)))
    return fields


class OperationSubmitter:
    """Submit an operation, render its envelope, then refresh the key lists.

    Concurrent submissions are allowed; whichever finishes last owns the
    result pane.
    """

    def __init__(self, api: ApiClient, state: UIState, poller: StatusPoller):
        self._api = api
        self._state = state
        self._poller = poller

    def submit(
        self,
        descriptor: OperationDescriptor,
        form_inputs: Optional[Mapping[str, object]] = None,
    ) -> "asyncio.Task[DisplayModel]":
        """Mark the client busy and schedule the request on the running loop."""

        if form_inputs is None:
            form_inputs = self._state.form_values(descriptor.name)
        self._state.set_status(StatusKind.WORKING, "Processing...")
        self._state.show_result(DisplayModel.working())
        fields = encode_inputs(descriptor, form_inputs)
        return asyncio.ensure_future(self._run(descriptor, fields))

    def submit_form(self, name: str) -> "asyncio.Task[DisplayModel]":
        """Submit the values currently held in the named form."""

        descriptor = get_operation(name)
        return self.submit(descriptor, dict(self._state.form_values(name)))

    async def _run(
        self, descriptor: OperationDescriptor, fields: List[Tuple[str, str]]
    ) -> DisplayModel:
        try:
            raw = await self._api.post_form(descriptor.endpoint_path, fields)
        except TransportError as exc:
            log.warning("%s request failed: %s", descriptor.name, exc)
            model = DisplayModel.failure("Failed to connect to the key service")
        except Exception as exc:
            log.exception("Unexpected failure during %s", descriptor.name)
            model = DisplayModel.failure(str(exc) or exc.__class__.__name__)
        else:
            model = interpret(raw)
            log.info(
                "%s finished with HTTP %d (%s)",
                descriptor.name,
                raw.status_code,
                model.kind.value,
            )

        self._state.show_result(model)
        self._state.set_status(StatusKind.READY, "Ready")
        await self._poller.refresh()
        return model


def form_defaults() -> Dict[str, Dict[str, object]]:
    """Initial values for every operation form."""

    defaults: Dict[str, Dict[str, object]] = {
        name: {field_name: "" for field_name in descriptor.input_field_names}
        for name, descriptor in OPERATIONS.items()
    }
    defaults["export"]["secret"] = False
    defaults["sign"]["sign_mode"] = "clearsign"
    return defaults


__all__ = [
    "OperationDescriptor",
    "OPERATIONS",
    "get_operation",
    "encode_inputs",
    "OperationSubmitter",
    "form_defaults",
]
