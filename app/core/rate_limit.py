"""Process-wide rate limiter wiring and the countdown ticker.

Design goals:
- One limiter per process, backed by the JSON file store from settings.
- Swap-friendly: tests replace the limiter through ``set_rate_limiter``.
- The periodic reset check is an explicit task owned by the app lifespan,
  so it is always cancelled on shutdown.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.rate_limit.json_file import JsonFileRateLimitStore
from app.core.config import settings
from app.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter, building it on first use."""

    global _limiter

    if _limiter is None:
        store = JsonFileRateLimitStore(settings.app.rate_limit_state_path)
        _limiter = RateLimiter(
            store,
            max_requests=settings.app.rate_limit_max_requests,
            window_seconds=settings.app.rate_limit_window_minutes * 60,
        )
        logger.info(
            "rate_limit.initialized",
            extra={
                "limit": settings.app.rate_limit_max_requests,
                "window_s": settings.app.rate_limit_window_minutes * 60,
                "state_file": str(store.path),
            },
        )

    return _limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Replace (or drop, with None) the process-wide limiter."""

    global _limiter
    _limiter = limiter


class RateLimitTicker:
    """Calls ``RateLimiter.tick()`` on a fixed interval.

    The latest countdown string is kept on ``countdown`` for observers.
    """

    def __init__(self, limiter: RateLimiter, *, interval_seconds: float = 1.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.limiter = limiter
        self.interval_seconds = interval_seconds
        self.countdown = ""
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info("rate_limit.ticker_started", extra={"interval_s": self.interval_seconds})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("rate_limit.ticker_stopped")

    async def _run(self) -> None:
        while True:
            try:
                self.countdown = self.limiter.tick()
            except Exception as exc:
                # Next tick retries
                logger.error(
                    "rate_limit.tick_failed",
                    exc_info=exc,
                    extra={"error_type": type(exc).__name__, "error": str(exc)},
                )
            await asyncio.sleep(self.interval_seconds)
