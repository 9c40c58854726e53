"""
Error types raised by the trading engine.

Each error carries the HTTP status the API layer answers with, so the
engine can raise synchronously and the boundary only has to translate.
"""


class MarketError(Exception):
    """Base error for the trading engine."""

    http_status = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(MarketError, ValueError):
    """Missing or malformed order fields."""

    http_status = 400


class NotFoundError(MarketError):
    """Unknown order id or instrument."""

    http_status = 404


class InvalidStateError(MarketError):
    """Operation not allowed in the order's current status."""

    http_status = 400


class UpstreamError(MarketError):
    """A collaborating provider (weather, translation) failed."""

    http_status = 500
