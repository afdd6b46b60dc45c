"""Exception hierarchy for the PGP QR client."""
from __future__ import annotations


class ClientError(Exception):
    """Base class for failures raised by the client layers."""


class TransportError(ClientError):
    """The service could not be reached or the connection broke mid-request."""


class MalformedEnvelopeError(ClientError):
    """A response body is not a valid ``{success, data, error, qr_code}`` envelope."""


class ScannerError(ClientError):
    """The camera decoder could not be started or stopped."""


__all__ = ["ClientError", "TransportError", "MalformedEnvelopeError", "ScannerError"]
