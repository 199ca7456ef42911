"""Persisted rolling-window limiter for successful generations.

The window starts with the first successful generation and lasts a fixed
duration; when it elapses the budget is restored in full. State survives
restarts through an ``AbstractRateLimitStore``.

Lifecycle of the persisted records:
- absent: full budget, no window open
- after the first success: counter = max - 1, reset time = now + window
- after each further success: counter decremented, reset time unchanged
- once now passes the reset time: records removed, full budget again
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import (
    REQUESTS_LEFT_KEY,
    RESET_TIME_KEY,
    AbstractRateLimitStore,
)
from app.schemas.generation import RateLimitStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 30
DEFAULT_WINDOW_SECONDS = 30 * 60


@dataclass(frozen=True)
class RateLimitState:
    """Current budget.

    Attributes:
        requests_remaining: Generations left in the window, 0..max.
        window_reset_at_ms: Epoch milliseconds when the window resets, None
            when no window is open (budget is then full).
    """

    requests_remaining: int
    window_reset_at_ms: int | None


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a pre-generation check.

    Attributes:
        allowed: Whether a generation may be attempted now.
        limit: Max generations per window.
        remaining: Generations left in the current window.
        reset_at_ms: Epoch milliseconds when the window resets, if open.
        retry_after_seconds: Suggested wait when denied.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int | None
    retry_after_seconds: int | None


def format_countdown(remaining_ms: int) -> str:
    """Render a duration as zero-padded ``MM:SS`` (floored)."""
    total_seconds = max(0, remaining_ms) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


class RateLimiter:
    """Generation budget with a window opened by the first success.

    Unlike a fixed-window limiter, checking does not spend budget: callers
    check before a generation and record only the ones that succeeded, so
    failed calls are free.
    """

    def __init__(
        self,
        store: AbstractRateLimitStore,
        *,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Build the limiter and restore persisted state.

        Args:
            store: Persistence port for the two records.
            max_requests: Generations allowed per window.
            window_seconds: Window length in seconds.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If max_requests or window_seconds are invalid.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._clock = clock
        self._lock = threading.RLock()

        self._remaining = max_requests
        self._reset_at_ms: int | None = None
        self._load()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> int:
        return self._window_ms // 1000

    @property
    def state(self) -> RateLimitState:
        with self._lock:
            return RateLimitState(
                requests_remaining=self._remaining,
                window_reset_at_ms=self._reset_at_ms,
            )

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _load(self) -> None:
        raw_remaining = self._store.get(REQUESTS_LEFT_KEY)
        raw_reset = self._store.get(RESET_TIME_KEY)

        if raw_remaining is None and raw_reset is None:
            return

        if raw_remaining is None or raw_reset is None:
            logger.warning(
                "rate_limit.partial_state_discarded",
                extra={
                    "has_counter": raw_remaining is not None,
                    "has_reset_time": raw_reset is not None,
                },
            )
            self._clear_store()
            return

        try:
            remaining = int(raw_remaining)
            reset_at_ms = int(raw_reset)
        except ValueError:
            logger.warning("rate_limit.corrupt_state_discarded")
            self._clear_store()
            return

        now_ms = self._now_ms()
        if now_ms > reset_at_ms:
            logger.info("rate_limit.stale_window_discarded", extra={"reset_at_ms": reset_at_ms})
            self._clear_store()
            return

        # A window never ends later than one window length from now
        latest_reset_ms = now_ms + self._window_ms
        if reset_at_ms > latest_reset_ms:
            logger.warning(
                "rate_limit.reset_time_clamped",
                extra={"reset_at_ms": reset_at_ms, "clamped_to_ms": latest_reset_ms},
            )
            reset_at_ms = latest_reset_ms
            self._store.set_many({RESET_TIME_KEY: str(reset_at_ms)})

        self._remaining = min(max(remaining, 0), self._max_requests)
        self._reset_at_ms = reset_at_ms
        logger.info(
            "rate_limit.state_restored",
            extra={"remaining": self._remaining, "reset_at_ms": reset_at_ms},
        )

    def _clear_store(self) -> None:
        self._store.delete(REQUESTS_LEFT_KEY)
        self._store.delete(RESET_TIME_KEY)

    def _reset_locked(self) -> None:
        self._remaining = self._max_requests
        self._reset_at_ms = None
        self._clear_store()
        logger.info("rate_limit.window_reset", extra={"limit": self._max_requests})

    def _window_elapsed_locked(self, now_ms: int) -> bool:
        return self._reset_at_ms is not None and now_ms >= self._reset_at_ms

    def check_and_consume(self) -> RateLimitDecision:
        """Decide whether a generation may be attempted now.

        Denied only while the budget is exhausted and the window is still
        open. An elapsed window is reset first. Budget is spent by
        ``record_success()``.
        """
        now_ms = self._now_ms()
        with self._lock:
            if self._window_elapsed_locked(now_ms):
                self._reset_locked()

            if self._remaining == 0 and self._reset_at_ms is not None:
                retry_after = max(0, math.ceil((self._reset_at_ms - now_ms) / 1000))
                return RateLimitDecision(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    reset_at_ms=self._reset_at_ms,
                    retry_after_seconds=retry_after,
                )

            return RateLimitDecision(
                allowed=True,
                limit=self._max_requests,
                remaining=self._remaining,
                reset_at_ms=self._reset_at_ms,
                retry_after_seconds=None,
            )

    def record_success(self) -> RateLimitState:
        """Spend one generation; opens the window on the first success.

        Both records are written in one store call and the in-memory state
        only changes once that write succeeded.

        Raises:
            OSError: If the store could not persist the new state.
        """
        now_ms = self._now_ms()
        with self._lock:
            if self._window_elapsed_locked(now_ms):
                self._reset_locked()

            remaining = max(0, self._remaining - 1)
            reset_at_ms = self._reset_at_ms if self._reset_at_ms is not None else now_ms + self._window_ms

            self._store.set_many(
                {
                    REQUESTS_LEFT_KEY: str(remaining),
                    RESET_TIME_KEY: str(reset_at_ms),
                }
            )
            self._remaining = remaining
            self._reset_at_ms = reset_at_ms

            logger.info(
                "rate_limit.consumed",
                extra={
                    "limit": self._max_requests,
                    "remaining": remaining,
                    "reset_at_ms": reset_at_ms,
                },
            )
            return RateLimitState(
                requests_remaining=remaining,
                window_reset_at_ms=reset_at_ms,
            )

    def tick(self, now_ms: int | None = None) -> str:
        """Periodic check: reset an elapsed window and report the countdown.

        Args:
            now_ms: Current time in epoch milliseconds; defaults to the clock.

        Returns:
            ``MM:SS`` until reset while the budget is exhausted, else ``""``.
        """
        if now_ms is None:
            now_ms = self._now_ms()
        with self._lock:
            if self._window_elapsed_locked(now_ms):
                self._reset_locked()
                return ""

            if self._remaining == 0 and self._reset_at_ms is not None:
                return format_countdown(self._reset_at_ms - now_ms)
            return ""

    def status(self) -> RateLimitStatus:
        """Budget snapshot after applying any pending reset."""
        with self._lock:
            countdown = self.tick()
            return RateLimitStatus(
                limit=self._max_requests,
                remaining=self._remaining,
                reset_at_ms=self._reset_at_ms,
                countdown=countdown,
            )
