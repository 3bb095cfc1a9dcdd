"""Core data models for the Xero operation gateway.

This module defines the shared data structures passed between the
transport, the dispatcher and the operation handlers.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Operation(str, Enum):
    """Every operation the gateway can perform against Xero."""

    # List operations
    LIST_ACCOUNTS = "list-accounts"
    LIST_CONTACTS = "list-contacts"
    LIST_INVOICES = "list-invoices"
    LIST_ORGANISATION_DETAILS = "list-organisation-details"
    LIST_ITEMS = "list-items"
    LIST_PAYMENTS = "list-payments"
    LIST_CREDIT_NOTES = "list-credit-notes"
    LIST_QUOTES = "list-quotes"
    LIST_BANK_TRANSACTIONS = "list-bank-transactions"
    LIST_MANUAL_JOURNALS = "list-manual-journals"
    LIST_TAX_RATES = "list-tax-rates"
    LIST_TRACKING_CATEGORIES = "list-tracking-categories"
    LIST_TRIAL_BALANCE = "list-trial-balance"
    LIST_PROFIT_AND_LOSS = "list-profit-and-loss"
    LIST_BALANCE_SHEET = "list-balance-sheet"
    LIST_AGED_RECEIVABLES = "list-aged-receivables"
    LIST_AGED_PAYABLES = "list-aged-payables"
    LIST_CONTACT_GROUPS = "list-contact-groups"

    # Payroll list operations
    LIST_PAYROLL_EMPLOYEES = "list-payroll-employees"
    LIST_PAYROLL_TIMESHEETS = "list-payroll-timesheets"
    LIST_PAYROLL_LEAVE = "list-payroll-leave"
    LIST_PAYROLL_LEAVE_TYPES = "list-payroll-leave-types"
    LIST_PAYROLL_LEAVE_BALANCES = "list-payroll-leave-balances"
    LIST_PAYROLL_LEAVE_PERIODS = "list-payroll-leave-periods"

    # Create operations
    CREATE_CONTACT = "create-contact"
    CREATE_INVOICE = "create-invoice"
    CREATE_CREDIT_NOTE = "create-credit-note"
    CREATE_QUOTE = "create-quote"
    CREATE_PAYMENT = "create-payment"
    CREATE_ITEM = "create-item"
    CREATE_BANK_TRANSACTION = "create-bank-transaction"
    CREATE_MANUAL_JOURNAL = "create-manual-journal"
    CREATE_PAYROLL_TIMESHEET = "create-payroll-timesheet"
    CREATE_TRACKING_CATEGORY = "create-tracking-category"
    CREATE_TRACKING_OPTIONS = "create-tracking-options"

    # Get operations
    GET_PAYROLL_TIMESHEET = "get-payroll-timesheet"

    # Update operations
    UPDATE_CONTACT = "update-contact"
    UPDATE_INVOICE = "update-invoice"
    UPDATE_CREDIT_NOTE = "update-credit-note"
    UPDATE_QUOTE = "update-quote"
    UPDATE_ITEM = "update-item"
    UPDATE_BANK_TRANSACTION = "update-bank-transaction"
    UPDATE_MANUAL_JOURNAL = "update-manual-journal"
    UPDATE_TRACKING_CATEGORY = "update-tracking-category"
    UPDATE_TRACKING_OPTIONS = "update-tracking-options"
    APPROVE_PAYROLL_TIMESHEET = "approve-payroll-timesheet"
    REVERT_PAYROLL_TIMESHEET = "revert-payroll-timesheet"
    ADD_TIMESHEET_LINE = "add-timesheet-line"
    UPDATE_TIMESHEET_LINE = "update-timesheet-line"

    # Delete operations
    DELETE_PAYROLL_TIMESHEET = "delete-payroll-timesheet"


class OperationGroup(str, Enum):
    """Factory group an operation handler is produced by."""
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    GET = "get"


# A handler takes the normalized arguments and returns the operation result.
OperationHandler = Callable[[dict[str, Any]], Union[Any, Awaitable[Any]]]


class OperationDescriptor(BaseModel):
    """
    One registered operation.

    Built once at startup by a handler factory and never mutated.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., description="Operation identifier (e.g. create-invoice)")
    description: str = Field(..., description="Human-readable description")
    group: OperationGroup
    handler: OperationHandler


HandlerFactory = Callable[[], OperationDescriptor]


class OperationRequest(BaseModel):
    """
    A single gateway invocation.

    `operation` is optional at this level so that a missing operation can be
    reported as its own error instead of failing request parsing.
    """
    operation: Optional[str] = None
    arguments: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_arguments(cls, arguments: Optional[dict[str, Any]]) -> "OperationRequest":
        """Split a flat tool-call argument bag into operation + parameters."""
        params = dict(arguments or {})
        operation = params.pop("operation", None)
        if operation is not None and not isinstance(operation, str):
            operation = str(operation)
        return cls(operation=operation, arguments=params)


class ErrorCode(str, Enum):
    """Machine-readable error codes carried by failed envelopes."""
    MISSING_OPERATION = "MISSING_OPERATION"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    HANDLER_FAILURE = "HANDLER_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ResponseEnvelope(BaseModel):
    """
    Uniform result of every dispatch.

    Exactly one of `content` (success) or `message` (failure) is populated.
    """
    success: bool
    content: Optional[Any] = None
    message: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    operation: Optional[str] = None
    session_id: Optional[str] = None
    execution_time_ms: float = 0

    @classmethod
    def ok(cls, content: Any, **kwargs: Any) -> "ResponseEnvelope":
        # Handlers with nothing to return (e.g. deletes) still yield content
        return cls(success=True, content={} if content is None else content, **kwargs)

    @classmethod
    def fail(
        cls,
        message: str,
        error_code: Optional[ErrorCode] = None,
        **kwargs: Any
    ) -> "ResponseEnvelope":
        return cls(success=False, message=message, error_code=error_code, **kwargs)


class AuthStatus(str, Enum):
    """Authentication outcome recorded on a session."""
    UNKNOWN = "unknown"
    SUCCESS = "success"
    FAILED = "failed"


class SessionRecord(BaseModel):
    """Telemetry record for one tool invocation."""
    id: str
    created: datetime = Field(default_factory=utc_now)
    last_used: datetime = Field(default_factory=utc_now)
    operations: list[str] = Field(default_factory=list)
    auth_status: AuthStatus = AuthStatus.UNKNOWN


class RateLimitState(BaseModel):
    """Request count for one client key inside its current window."""
    count: int = 0
    reset_at: float


class RateLimitDecision(BaseModel):
    """Outcome of a rate-limit check."""
    allowed: bool
    client_key: str
    count: int
    limit: int
    reset_at: float
    retry_after: float = 0

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


class AuditEntry(BaseModel):
    """
    Audit log entry for a dispatched operation.

    Captures operation, arguments, outcome and timing for diagnostics.
    """
    id: str
    timestamp: datetime = Field(default_factory=utc_now)

    operation: Optional[str] = None
    session_id: Optional[str] = None
    client_key: Optional[str] = None

    arguments: dict[str, Any] = Field(default_factory=dict)

    success: bool
    error_code: Optional[ErrorCode] = None
    message: Optional[str] = None
    execution_time_ms: float = 0
