"""Per-client rate limiting.

Fixed window counter keyed by client identity (usually the remote address).
A denial is a decision, not an exception: callers inspect the returned
RateLimitDecision and short-circuit before any dispatch work.
"""

import time
from threading import Lock
from typing import Optional

from shared.logging import get_logger
from shared.models import RateLimitDecision, RateLimitState

logger = get_logger(__name__)


class RateLimiter:
    """
    In-memory rate limiter.

    Each key gets a window of `window_seconds`; at most `max_requests`
    requests are admitted per window. Expired keys are swept lazily.
    """

    def __init__(self, window_seconds: float = 60.0, max_requests: int = 100) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")

        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._state: dict[str, RateLimitState] = {}
        self._lock = Lock()
        self._next_sweep: Optional[float] = None

    def check(self, client_key: str, now: Optional[float] = None) -> RateLimitDecision:
        """
        Count a request for `client_key` and decide whether to admit it.

        Args:
            client_key: Client identity
            now: Current monotonic time in seconds (defaults to time.monotonic())

        Returns:
            The decision; `allowed` is False once the window quota is used up
        """
        if now is None:
            now = time.monotonic()

        with self._lock:
            self._sweep(now)

            state = self._state.get(client_key)
            if state is None or now >= state.reset_at:
                state = RateLimitState(count=1, reset_at=now + self.window_seconds)
                self._state[client_key] = state
                allowed = True
            elif state.count >= self.max_requests:
                allowed = False
            else:
                state.count += 1
                allowed = True

            decision = RateLimitDecision(
                allowed=allowed,
                client_key=client_key,
                count=state.count,
                limit=self.max_requests,
                reset_at=state.reset_at,
                retry_after=0 if allowed else max(state.reset_at - now, 0),
            )

        if allowed:
            logger.debug(
                "Rate limit check passed",
                client=client_key,
                count=decision.count,
                limit=self.max_requests
            )
        else:
            logger.warning(
                "Rate limit exceeded",
                client=client_key,
                count=decision.count,
                limit=self.max_requests,
                retry_after=round(decision.retry_after, 1)
            )
        return decision

    def _sweep(self, now: float) -> None:
        """Drop expired keys, at most once per window. Caller holds the lock."""
        if self._next_sweep is not None and now < self._next_sweep:
            return
        expired = [key for key, state in self._state.items() if now >= state.reset_at]
        for key in expired:
            del self._state[key]
        self._next_sweep = now + self.window_seconds

    def tracked_clients(self) -> int:
        """Number of client keys currently holding state."""
        with self._lock:
            return len(self._state)

    def reset(self) -> None:
        """Clear all rate limit state."""
        with self._lock:
            self._state.clear()
            self._next_sweep = None
