"""Operation Dispatcher for the gateway.

Routes one gateway invocation to its operation handler.
Handles operation lookup, argument normalization, execution and the
response envelope.
"""

import asyncio
import inspect
import time
from typing import Any, Optional

from shared.logging import get_logger
from shared.models import (
    AuthStatus,
    ErrorCode,
    OperationHandler,
    OperationRequest,
    ResponseEnvelope,
)
from gateway.audit import AuditLogger
from gateway.errors import GatewayError, HandlerFailure, MissingOperation
from gateway.normalizer import ParameterNormalizer
from gateway.registry import OperationRegistry
from gateway.telemetry import TelemetryTracker

logger = get_logger(__name__)


class Dispatcher:
    """
    Dispatches operation requests.

    Responsibilities:
    - Reject requests without an operation
    - Resolve the operation in the registry
    - Normalize arguments for the handler
    - Invoke the handler and wrap the outcome in an envelope
    - Record the invocation in telemetry and the audit log

    `dispatch` never raises: every path ends in a ResponseEnvelope.
    """

    def __init__(
        self,
        registry: OperationRegistry,
        normalizer: Optional[ParameterNormalizer] = None,
        telemetry: Optional[TelemetryTracker] = None,
        audit_logger: Optional[AuditLogger] = None
    ) -> None:
        self.registry = registry
        self.normalizer = normalizer or ParameterNormalizer()
        self.telemetry = telemetry or TelemetryTracker()
        self.audit_logger = audit_logger

    async def dispatch(
        self,
        request: OperationRequest,
        client_key: Optional[str] = None
    ) -> ResponseEnvelope:
        """
        Execute one operation request.

        This is the main entry point for operation execution.

        Args:
            request: Operation name and flat arguments
            client_key: Caller identity, recorded in the audit log

        Returns:
            Success envelope with the handler result, or a failure envelope
        """
        start_time = time.perf_counter()
        session_id = self.telemetry.start_session()
        operation = request.operation.strip() if request.operation else None
        operation = operation or None
        auth_status: Optional[AuthStatus] = None

        logger.info(
            "Operation dispatch started",
            operation=operation,
            session_id=session_id
        )

        try:
            content = await self._dispatch(request)
            auth_status = AuthStatus.SUCCESS
            envelope = ResponseEnvelope.ok(content)
        except HandlerFailure as e:
            auth_status = AuthStatus.FAILED
            logger.error(
                "Operation failed",
                operation=operation,
                session_id=session_id,
                error=e.message,
                error_type=type(e.cause).__name__,
                exc_info=e.cause
            )
            envelope = ResponseEnvelope.fail(e.message, e.code)
        except GatewayError as e:
            logger.warning(
                "Operation rejected",
                operation=operation,
                session_id=session_id,
                error_code=e.code.value,
                error=e.message
            )
            envelope = ResponseEnvelope.fail(e.message, e.code)
        except Exception as e:
            logger.error(
                "Unexpected dispatch error",
                operation=operation,
                session_id=session_id,
                error=str(e),
                exc_info=True
            )
            envelope = ResponseEnvelope.fail(
                f"Error executing operation: {e}", ErrorCode.INTERNAL_ERROR
            )

        envelope.operation = operation
        envelope.session_id = session_id
        envelope.execution_time_ms = (time.perf_counter() - start_time) * 1000

        self.telemetry.complete_session(session_id, operation, auth_status)

        logger.info(
            "Operation dispatch completed",
            operation=operation,
            session_id=session_id,
            success=envelope.success,
            execution_time_ms=round(envelope.execution_time_ms, 2)
        )

        await self._audit(request, envelope, client_key)
        return envelope

    async def _dispatch(self, request: OperationRequest) -> Any:
        """Run the dispatch state machine; raises GatewayError on failure."""
        operation = request.operation.strip() if request.operation else ""
        if not operation:
            raise MissingOperation()

        handler = self.registry.resolve(operation)
        arguments = self.normalizer.normalize(operation, request.arguments)

        logger.debug("Normalized arguments", operation=operation, arguments=arguments)

        try:
            return await self.invoke(handler, arguments)
        except Exception as e:
            raise HandlerFailure(operation, e) from e

    async def invoke(self, handler: OperationHandler, arguments: dict[str, Any]) -> Any:
        """Call a handler, awaiting it if async and off-loop if sync."""
        if inspect.iscoroutinefunction(handler):
            return await handler(arguments)

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, handler, arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _audit(
        self,
        request: OperationRequest,
        envelope: ResponseEnvelope,
        client_key: Optional[str]
    ) -> None:
        if self.audit_logger is None:
            return
        try:
            await self.audit_logger.log(request.arguments, envelope, client_key)
        except Exception as e:
            logger.warning("Failed to write audit entry", error=str(e))
