"""Audit logging for the gateway.

Logs every dispatched operation for diagnostics.
Captures: operation, arguments, session, outcome, timing.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import AuditEntry, ResponseEnvelope

logger = get_logger(__name__)


class AuditLogger:
    """
    Audit logger for gateway dispatches.

    Every dispatch is logged with:
    - Operation name and session
    - Arguments (with sensitive data redaction)
    - Timestamp
    - Outcome and error code
    """

    # Parameters that should be redacted in audit logs
    SENSITIVE_PARAMS = {
        "password", "token", "secret", "api_key", "apikey", "credential",
        "client_secret", "access_token", "authorization",
    }

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        buffer_size: int = 100
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.buffer_size = buffer_size
        self._buffer: list[AuditEntry] = []
        self._lock = asyncio.Lock()

        if self.enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _redact_sensitive(self, params: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive parameters from audit logs."""
        redacted = {}
        for key, value in params.items():
            if key.lower() in self.SENSITIVE_PARAMS:
                redacted[key] = "[REDACTED]"
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def create_entry(
        self,
        arguments: dict[str, Any],
        envelope: ResponseEnvelope,
        client_key: Optional[str] = None
    ) -> AuditEntry:
        """
        Create an audit entry from dispatch data.

        Args:
            arguments: Raw arguments the caller sent
            envelope: Dispatch result
            client_key: Caller identity, when known

        Returns:
            Audit entry
        """
        return AuditEntry(
            id=str(uuid.uuid4()),
            operation=envelope.operation,
            session_id=envelope.session_id,
            client_key=client_key,
            arguments=self._redact_sensitive(arguments),
            success=envelope.success,
            error_code=envelope.error_code,
            message=envelope.message,
            execution_time_ms=envelope.execution_time_ms,
        )

    async def log(
        self,
        arguments: dict[str, Any],
        envelope: ResponseEnvelope,
        client_key: Optional[str] = None
    ) -> None:
        """
        Log a dispatch.

        Args:
            arguments: Raw arguments the caller sent
            envelope: Dispatch result
            client_key: Caller identity, when known
        """
        if not self.enabled:
            return

        entry = self.create_entry(arguments, envelope, client_key)

        logger.info(
            "Operation executed",
            audit_id=entry.id,
            operation=entry.operation,
            session_id=entry.session_id,
            success=entry.success,
            error_code=entry.error_code.value if entry.error_code else None,
            execution_time_ms=round(entry.execution_time_ms, 2)
        )

        # Buffer for batch file writing
        async with self._lock:
            self._buffer.append(entry)

            if len(self._buffer) >= self.buffer_size:
                await self._flush()

    async def _flush(self) -> None:
        """Flush buffered entries to file."""
        if not self._buffer:
            return

        entries_to_write = self._buffer.copy()
        self._buffer.clear()

        try:
            async with aiofiles.open(self.log_path, "a") as f:
                for entry in entries_to_write:
                    await f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Failed to write audit log", error=str(e))
            # Re-add entries to buffer for retry
            self._buffer.extend(entries_to_write)

    async def flush(self) -> None:
        """Public method to flush audit buffer."""
        async with self._lock:
            await self._flush()
