"""Gateway error taxonomy.

Every error raised inside the gateway carries an ErrorCode and is turned
into a failed ResponseEnvelope at the dispatcher boundary.
"""

from typing import Optional

from shared.models import ErrorCode


class GatewayError(Exception):
    """Base exception for gateway errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MissingOperation(GatewayError):
    """No operation name was supplied."""

    code = ErrorCode.MISSING_OPERATION

    def __init__(self) -> None:
        super().__init__(
            "Error: No operation specified. Please provide an 'operation' "
            "parameter with one of the available operations."
        )


class UnknownOperation(GatewayError):
    """The operation name is not registered."""

    code = ErrorCode.UNKNOWN_OPERATION

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"Error: Unsupported operation '{operation}'. "
            "Check the tool description for the list of available operations."
        )


class ValidationError(GatewayError):
    """Required fields are missing or supplied fields are malformed."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        operation: str,
        missing: Optional[list[str]] = None,
        invalid: Optional[dict[str, str]] = None
    ) -> None:
        self.operation = operation
        self.missing = list(missing or [])
        self.invalid = dict(invalid or {})

        problems = []
        if self.missing:
            problems.append("missing required fields: " + ", ".join(self.missing))
        if self.invalid:
            problems.append(
                "invalid fields: "
                + "; ".join(f"{field} ({reason})" for field, reason in self.invalid.items())
            )
        super().__init__(
            f"Error: Invalid arguments for '{operation}': " + "; ".join(problems)
        )

    @property
    def fields(self) -> list[str]:
        """Every field named by this error."""
        return self.missing + [f for f in self.invalid if f not in self.missing]


class RateLimitExceeded(GatewayError):
    """The client used up its request quota for the current window."""

    code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(self, client_key: str, retry_after: float) -> None:
        self.client_key = client_key
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded. Retry after {retry_after:.0f} seconds."
        )


class HandlerFailure(GatewayError):
    """The operation handler raised."""

    code = ErrorCode.HANDLER_FAILURE

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        detail = str(cause) or type(cause).__name__
        super().__init__(f"Error executing operation '{operation}': {detail}")
