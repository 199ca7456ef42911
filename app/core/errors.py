"""Application-level exception types.

Domain errors raised by services/adapters and translated into HTTP responses
by ``app.core.exception_handlers``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    http_status: int
    retry_after: int
    max_images: int
    staged: int
    requested: int
    index: int
    max_bytes: int
    mime_type: str
    finish_reason: str
    model: str
    timeout_seconds: float
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when user input or configuration is rejected."""


class RateLimitAppError(ValidationAppError):
    """Raised when the generation budget of the current window is spent."""


class ConflictAppError(AppError):
    """Raised when a generation is submitted while another is in flight."""


class NotFoundAppError(AppError):
    """Raised when a referenced resource does not exist."""


class GenerationAppError(AppError):
    """Raised when the image generation service call fails."""
