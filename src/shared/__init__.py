"""Shared utilities and base classes for the Xero operation gateway."""

from shared.models import (
    AuditEntry,
    AuthStatus,
    ErrorCode,
    Operation,
    OperationDescriptor,
    OperationGroup,
    OperationRequest,
    ResponseEnvelope,
    SessionRecord,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "AuditEntry",
    "AuthStatus",
    "ErrorCode",
    "Operation",
    "OperationDescriptor",
    "OperationGroup",
    "OperationRequest",
    "ResponseEnvelope",
    "SessionRecord",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
