"""
exceptions.py — Error kinds raised by the order ingestion pipeline

Routers and the channel poller translate these into HTTP responses or
per-message outcomes. NoMatch is not an exception: the catalog matcher
returns None and the reconciliation engine records the miss.

Called by: services/*, routers/*
"""


class OrderIngestError(Exception):
    """Base class for pipeline failures."""


class ExtractionFormatError(OrderIngestError):
    """The extractor oracle returned output that is not a valid order intent."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class _TransportError(OrderIngestError):
    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExtractionTransportError(_TransportError):
    """The extractor oracle was unreachable, timed out, or answered non-2xx."""


class ChannelTransportError(_TransportError):
    """The mailbox provider was unreachable, timed out, or answered an error."""


class AuthorizationSkip(OrderIngestError):
    """No party, or no ACTIVE partnership between restaurant and supplier."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PersistenceError(OrderIngestError):
    """An order could not be written; the transaction was rolled back."""
