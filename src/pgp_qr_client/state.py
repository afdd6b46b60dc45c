"""Runtime state containers used by the PGP QR client."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

from .envelope import DisplayModel

# ``classifier`` depends on this module, so ``ClassifiedPayload`` is only
# imported for static type checking.
if TYPE_CHECKING:  # pragma: no cover - imported for static type checking only
    from .classifier import ClassifiedPayload

log = logging.getLogger(__name__)

Listener = Callable[[str], None]


class StatusKind(enum.Enum):
    READY = "ready"
    WORKING = "working"
    FETCHING = "fetching"
    ERROR = "error"
    UNREACHABLE = "unreachable"


@dataclass(slots=True, frozen=True)
class StatusLine:
    kind: StatusKind
    text: str


READY = StatusLine(StatusKind.READY, "Ready")


class ScanState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    SCANNING = "scanning"
    STOPPING = "stopping"


@dataclass(slots=True)
class ScanSession:
    """The one camera scan session of the process."""

    state: ScanState = ScanState.IDLE
    last_decoded_text: Optional[str] = None


@dataclass(slots=True)
class UIState:
    """Mutable state shared between the client components and the view.

    Components only write through the methods below; each write notifies the
    subscribed listeners with the name of the field that changed.
    """

    status: StatusLine = READY
    public_keys: Tuple[str, ...] = ()
    secret_keys: Tuple[str, ...] = ()
    result: DisplayModel = field(default_factory=DisplayModel)
    scan: Optional[ScanSession] = None
    scan_message: str = ""
    scanner_active: bool = False
    classified: Optional["ClassifiedPayload"] = None
    forms: Dict[str, Dict[str, object]] = field(default_factory=dict)
    notice: Optional[str] = None
    _listeners: List[Listener] = field(default_factory=list, repr=False)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, name: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(name)
            except Exception:
                log.exception("State listener failed for %r", name)

    @property
    def busy(self) -> bool:
        return self.status.kind is StatusKind.WORKING

    def set_status(self, kind: StatusKind, text: str) -> None:
        self.status = StatusLine(kind, text)
        self._notify("status")

    def replace_keys(self, public_keys: Sequence[str], secret_keys: Sequence[str]) -> None:
        self.public_keys = tuple(public_keys)
        self.secret_keys = tuple(secret_keys)
        self._notify("keys")

    def show_result(self, model: DisplayModel) -> None:
        """Replace the result and QR panes wholesale."""

        self.result = model
        self._notify("result")

    def ensure_scan_session(self) -> ScanSession:
        if self.scan is None:
            self.scan = ScanSession()
        return self.scan

    def set_scan_state(self, state: ScanState) -> None:
        self.ensure_scan_session().state = state
        self._notify("scan")

    def set_scan_message(self, message: str) -> None:
        self.scan_message = message
        self._notify("scan_message")

    def set_scanner_active(self, active: bool) -> None:
        self.scanner_active = active
        self._notify("scan_controls")

    def set_classified(self, payload: Optional["ClassifiedPayload"]) -> None:
        self.classified = payload
        self._notify("classified")

    def form_values(self, name: str) -> Dict[str, object]:
        return self.forms.setdefault(name, {})

    def set_form_value(self, name: str, field_name: str, value: object) -> None:
        self.form_values(name)[field_name] = value
        self._notify("forms")

    def notify_user(self, message: str) -> None:
        log.info("Notice: %s", message)
        self.notice = message
        self._notify("notice")


__all__ = [
    "StatusKind",
    "StatusLine",
    "READY",
    "ScanState",
    "ScanSession",
    "UIState",
]
