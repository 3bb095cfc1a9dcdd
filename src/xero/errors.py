"""Exceptions raised by the Xero API client."""

from typing import Optional


class XeroAPIError(Exception):
    """Base exception for Xero API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class XeroConnectionError(XeroAPIError):
    """The Xero API could not be reached."""


class XeroAuthError(XeroAPIError):
    """Authentication with Xero failed."""


class XeroNotFoundError(XeroAPIError):
    """The requested Xero resource does not exist."""


class XeroRateLimitError(XeroAPIError):
    """Xero throttled the request."""


class XeroServerError(XeroAPIError):
    """Xero returned a 5xx response."""


class XeroValidationError(XeroAPIError):
    """Xero rejected the request body."""
