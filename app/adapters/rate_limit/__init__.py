"""Persistence adapters for the generation rate limiter.

The limiter only needs a tiny key/value port (two scalar records), so the
backing store can be swapped (memory for tests, a JSON file by default)
without touching the limiter itself.
"""

from app.adapters.rate_limit.base import (
    REQUESTS_LEFT_KEY,
    RESET_TIME_KEY,
    AbstractRateLimitStore,
)
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.adapters.rate_limit.json_file import JsonFileRateLimitStore

__all__ = [
    "AbstractRateLimitStore",
    "InMemoryRateLimitStore",
    "JsonFileRateLimitStore",
    "REQUESTS_LEFT_KEY",
    "RESET_TIME_KEY",
]
