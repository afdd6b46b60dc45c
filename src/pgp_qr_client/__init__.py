"""PGP QR client package."""
from __future__ import annotations

from .api import ApiClient, RawResult
from .classifier import ClassifiedPayload, PayloadCategory, PayloadDispatcher, ScanAction
from .config import CameraConfig, ClientConfig, ScanSettings, StyleConfig
from .console import KeyConsole
from .envelope import DisplayModel, ResponseEnvelope, interpret
from .errors import ClientError, MalformedEnvelopeError, ScannerError, TransportError
from .operations import OPERATIONS, OperationDescriptor, OperationSubmitter
from .scanner import DecodeAttempt, FrameDecoder, ScanSessionController
from .state import ScanState, StatusKind, UIState
from .status import StatusPoller, StatusSnapshot

__all__ = [
    "ApiClient",
    "RawResult",
    "ClassifiedPayload",
    "PayloadCategory",
    "PayloadDispatcher",
    "ScanAction",
    "CameraConfig",
    "ClientConfig",
    "ScanSettings",
    "StyleConfig",
    "KeyConsole",
    "DisplayModel",
    "ResponseEnvelope",
    "interpret",
    "ClientError",
    "MalformedEnvelopeError",
    "ScannerError",
    "TransportError",
    "OPERATIONS",
    "OperationDescriptor",
    "OperationSubmitter",
    "DecodeAttempt",
    "FrameDecoder",
    "ScanSessionController",
    "ScanState",
    "StatusKind",
    "UIState",
    "StatusPoller",
    "StatusSnapshot",
]

__version__ = "1.0"
