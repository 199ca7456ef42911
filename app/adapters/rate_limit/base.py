"""Rate limit store interface.

Values are stored as strings: the remaining-request counter as a decimal
integer and the window reset time as epoch milliseconds.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

REQUESTS_LEFT_KEY = "requestsLeft"
RESET_TIME_KEY = "limitResetTime"


class AbstractRateLimitStore(ABC):
    """Synchronous key/value store holding the limiter's persisted records."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value for key, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Durably store value under key."""
        raise NotImplementedError

    @abstractmethod
    def set_many(self, values: Mapping[str, str]) -> None:
        """Durably store several records in one write.

        Either every value is stored or, when the write fails, none is.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; a missing key is not an error."""
        raise NotImplementedError
