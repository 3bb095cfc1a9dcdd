"""Xero operation gateway.

One MCP tool, many Xero operations: requests name an `operation` and carry
flat arguments, which are rate limited, normalized and dispatched to the
registered Xero handler.
"""

from gateway.dispatcher import Dispatcher
from gateway.errors import (
    GatewayError,
    HandlerFailure,
    MissingOperation,
    RateLimitExceeded,
    UnknownOperation,
    ValidationError,
)
from gateway.normalizer import ParameterNormalizer
from gateway.rate_limit import RateLimiter
from gateway.registry import OperationRegistry
from gateway.service import OperationGateway, build_gateway
from gateway.telemetry import TelemetryTracker

__all__ = [
    "Dispatcher",
    "GatewayError",
    "HandlerFailure",
    "MissingOperation",
    "OperationGateway",
    "OperationRegistry",
    "ParameterNormalizer",
    "RateLimitExceeded",
    "RateLimiter",
    "TelemetryTracker",
    "UnknownOperation",
    "ValidationError",
    "build_gateway",
]
