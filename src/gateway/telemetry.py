"""Session and authentication telemetry.

Telemetry is observability only: nothing here may fail a request, so every
recording path logs and swallows its own errors.
"""

import uuid
from collections import OrderedDict
from datetime import datetime
from threading import Lock
from typing import Any, Awaitable, Callable, Optional

from shared.logging import get_logger
from shared.models import AuthStatus, SessionRecord, utc_now

logger = get_logger(__name__)


class TelemetryTracker:
    """
    Tracks authentication probe outcomes and per-invocation sessions.

    The session map is bounded: once `max_sessions` records exist the oldest
    one is evicted.
    """

    def __init__(
        self,
        max_sessions: int = 1000,
        active_window_seconds: float = 300.0
    ) -> None:
        self.max_sessions = max_sessions
        self.active_window_seconds = active_window_seconds

        self.authentication_attempts = 0
        self.successful_authentications = 0
        self.failed_authentications = 0

        self._sessions: "OrderedDict[str, SessionRecord]" = OrderedDict()
        self._lock = Lock()

    async def probe_authentication(self, probe: Callable[[], Awaitable[Any]]) -> bool:
        """
        Run an authentication probe and count its outcome.

        Args:
            probe: Coroutine function that raises if authentication fails

        Returns:
            True if the probe succeeded
        """
        self.authentication_attempts += 1
        try:
            result = await probe()
        except Exception as e:
            self.failed_authentications += 1
            logger.error(
                "Xero authentication failed",
                error=str(e),
                attempts=self.authentication_attempts,
                success_rate=self.success_rate()
            )
            return False

        self.successful_authentications += 1
        logger.info(
            "Xero authentication successful",
            organisation=organisation_name(result),
            attempts=self.authentication_attempts,
            success_rate=self.success_rate()
        )
        return True

    def success_rate(self) -> str:
        rate = self.successful_authentications / (self.authentication_attempts or 1)
        return f"{rate * 100:.1f}%"

    def start_session(self) -> Optional[str]:
        """
        Open a session record for one invocation.

        Returns:
            The session id, or None if recording failed
        """
        try:
            session_id = f"tool-{uuid.uuid4()}"
            record = SessionRecord(id=session_id)
            with self._lock:
                self._sessions[session_id] = record
                while len(self._sessions) > self.max_sessions:
                    self._sessions.popitem(last=False)
            return session_id
        except Exception as e:
            logger.warning("Failed to open telemetry session", error=str(e))
            return None

    def complete_session(
        self,
        session_id: Optional[str],
        operation: Optional[str],
        auth_status: Optional[AuthStatus] = None
    ) -> None:
        """Record the end of an invocation on its session."""
        if session_id is None:
            return
        try:
            with self._lock:
                record = self._sessions.get(session_id)
                if record is None:
                    return
                record.last_used = utc_now()
                if operation:
                    record.operations.append(operation)
                if auth_status is not None:
                    record.auth_status = auth_status
        except Exception as e:
            logger.warning("Failed to update telemetry session", session_id=session_id, error=str(e))

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._sessions.get(session_id)

    def auth_stats(self) -> dict[str, Any]:
        return {
            "attempts": self.authentication_attempts,
            "successful": self.successful_authentications,
            "failed": self.failed_authentications,
            "successRate": self.success_rate(),
        }

    def snapshot(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Monitoring view of the counters and the session map."""
        now = now or utc_now()
        with self._lock:
            records = list(self._sessions.values())

        sessions = [
            {
                "id": r.id,
                "created": r.created.isoformat(),
                "lastUsed": r.last_used.isoformat(),
                "toolsCalled": list(r.operations),
                "authStatus": r.auth_status.value,
                "duration": (now - r.created).total_seconds(),
            }
            for r in records
        ]
        active = [
            r for r in records
            if (now - r.last_used).total_seconds() < self.active_window_seconds
        ]
        return {
            "totalSessions": len(sessions),
            "activeSessions": len(active),
            "authStats": self.auth_stats(),
            "sessions": sessions,
        }

    def clear(self) -> None:
        """Drop all sessions and reset the counters."""
        with self._lock:
            self._sessions.clear()
        self.authentication_attempts = 0
        self.successful_authentications = 0
        self.failed_authentications = 0


def organisation_name(result: Any) -> str:
    """Best-effort organisation name from an Organisations response."""
    if isinstance(result, dict):
        organisations = result.get("Organisations")
        if isinstance(organisations, list) and organisations:
            first = organisations[0]
            if isinstance(first, dict):
                return str(first.get("Name", "Unknown"))
        if "Name" in result:
            return str(result["Name"])
    return "Unknown"
