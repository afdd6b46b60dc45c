"""Response envelope parsing and result rendering.

Every endpoint of the key service answers with the same JSON wrapper::

    {"success": true, "data": ..., "error": null, "qr_code": "<svg>...</svg>"}

:func:`interpret` turns a raw HTTP result into a :class:`DisplayModel` and never
raises; the model knows how to render itself as HTML fragments for the result
pane and the QR transfer pane.
"""
from __future__ import annotations

import enum
import html
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .api import RawResult
from .errors import MalformedEnvelopeError

log = logging.getLogger(__name__)

_ENVELOPE_KEYS = ("success", "data", "error", "qr_code")


@dataclass(slots=True, frozen=True)
class ResponseEnvelope:
    """Parsed form of the uniform success/data/error wrapper."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    visual_payload: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, body: bytes | str) -> "ResponseEnvelope":
        """Decode ``body`` or raise :class:`MalformedEnvelopeError`."""

        try:
            document = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedEnvelopeError("Response is not valid JSON") from exc

        if not isinstance(document, dict):
            raise MalformedEnvelopeError("Response is not a JSON object")
        return cls.from_mapping(document)

    @classmethod
    def from_mapping(cls, document: Mapping[str, Any]) -> "ResponseEnvelope":
        success = document.get("success")
        if not isinstance(success, bool):
            raise MalformedEnvelopeError("Response has no boolean 'success' field")

        error = document.get("error")
        if error is not None and not isinstance(error, str):
            error = str(error)

        qr_code = document.get("qr_code")
        if not isinstance(qr_code, str) or not qr_code:
            qr_code = None

        extra: Dict[str, Any] = {
            key: value for key, value in document.items() if key not in _ENVELOPE_KEYS
        }
        return cls(
            success=success,
            data=document.get("data"),
            error=error,
            visual_payload=qr_code,
            extra=extra,
        )


class ResultKind(enum.Enum):
    EMPTY = "empty"
    WORKING = "working"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(slots=True, frozen=True)
class DisplayModel:
    """What the result pane and the QR transfer pane should show.

    ``text`` holds the unescaped result text (the pretty-printed JSON for
    structured data) or the error message; escaping happens only when the
    model is rendered.
    """

    kind: ResultKind = ResultKind.EMPTY
    text: Optional[str] = None
    visual_payload: Optional[str] = None

    @classmethod
    def working(cls) -> "DisplayModel":
        return cls(ResultKind.WORKING)

    @classmethod
    def failure(cls, message: str) -> "DisplayModel":
        return cls(ResultKind.FAILURE, text=message)

    def result_html(self) -> str:
        if self.kind is ResultKind.WORKING:
            return "<p>Working...</p>"
        if self.kind is ResultKind.FAILURE:
            return f'<p class="error">Error: {html.escape(self.text or "Unknown error")}</p>'
        if self.kind is ResultKind.SUCCESS:
            heading = "<h3>Operation Successful:</h3>"
            if self.text is None:
                return heading + "<p>Completed.</p>"
            return f"{heading}<pre>{html.escape(self.text)}</pre>"
        return ""

    def visual_html(self) -> str:
        # The SVG markup comes from the key service itself and is embedded as is.
        if self.visual_payload is None:
            return ""
        return (
            "<h3>QR Code for Transfer:</h3>"
            f'<div class="qr-code-display">{self.visual_payload}</div>'
            "<p>Scan this QR code with the other device.</p>"
        )


def format_data(data: Any) -> Optional[str]:
    """Return ``data`` as display text, or ``None`` when there is nothing to show."""

    if data is None or data == "":
        return None
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2, ensure_ascii=False)


def _failure_from_error_status(raw: RawResult) -> DisplayModel:
    message = f"Request failed with status {raw.status_code}"
    try:
        document = json.loads(raw.body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return DisplayModel.failure(message)
    if isinstance(document, dict) and document.get("error"):
        message = str(document["error"])
    return DisplayModel.failure(message)


def interpret(raw: RawResult) -> DisplayModel:
    """Turn an HTTP result into a :class:`DisplayModel` without ever raising."""

    try:
        if not raw.ok:
            return _failure_from_error_status(raw)

        envelope = ResponseEnvelope.parse(raw.body)
        if not envelope.success:
            return DisplayModel.failure(envelope.error or "Unknown error")

        return DisplayModel(
            ResultKind.SUCCESS,
            text=format_data(envelope.data),
            visual_payload=envelope.visual_payload,
        )
    except MalformedEnvelopeError as exc:
        log.warning("Malformed response envelope: %s", exc)
        return DisplayModel.failure(f"Malformed response from server ({exc})")
    except Exception as exc:
        log.exception("Unexpected failure while interpreting response")
        return DisplayModel.failure(str(exc) or exc.__class__.__name__)


__all__ = [
    "ResponseEnvelope",
    "ResultKind",
    "DisplayModel",
    "format_data",
    "interpret",
]
