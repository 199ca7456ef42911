"""In-memory rate limit store.

Not durable across restarts; used in tests and when persistence is not
wanted.
"""

from __future__ import annotations

import threading
from typing import Mapping

from app.adapters.rate_limit.base import AbstractRateLimitStore


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dict-backed store, thread-safe."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._lock = threading.RLock()
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def set_many(self, values: Mapping[str, str]) -> None:
        with self._lock:
            self._values.update(values)

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Copy of all stored values (for inspection in tests)."""
        with self._lock:
            return dict(self._values)
