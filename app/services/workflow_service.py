"""Image editor workflow: staging, submission checks, generation, budget.

This service is the single place where a user action turns into a model
call. It handles:
- Staging up to ``max_images`` input images
- Rejecting submissions while one is in flight
- Consulting the rate limiter before, and updating it after, a generation
- Keeping the latest result for download
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from app.adapters.image_generation.base import AbstractImageGenerationClient
from app.core.errors import (
    ConflictAppError,
    NotFoundAppError,
    RateLimitAppError,
    ValidationAppError,
)
from app.schemas.generation import GenerationResult, UploadedImage
from app.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGES = 3


class ImageEditorWorkflow:
    """Controller gluing staged images, the rate limiter and the model client.

    There is exactly one logical user, so state lives on this object.

    Attributes:
        client: Image generation client (possibly built lazily).
        limiter: Rate limiter consulted before each generation.
        max_images: Maximum number of staged images.
    """

    def __init__(
        self,
        client: AbstractImageGenerationClient | None,
        limiter: RateLimiter,
        *,
        max_images: int = DEFAULT_MAX_IMAGES,
        client_factory: Callable[[], AbstractImageGenerationClient] | None = None,
    ) -> None:
        """Build the workflow.

        Args:
            client: Image generation client, or None to build one with
                ``client_factory`` on the first generation.
            limiter: Rate limiter consulted before each generation.
            max_images: Maximum number of staged images.
            client_factory: Builds the client on demand, so staging works
                without model credentials.

        Raises:
            ValueError: If neither a client nor a factory is given.
        """
        if client is None and client_factory is None:
            raise ValueError("either client or client_factory is required")
        self._client = client
        self._client_factory = client_factory
        self.limiter = limiter
        self.max_images = max_images
        self._staged: list[UploadedImage] = []
        self._latest: GenerationResult | None = None
        self._in_flight = False

    @property
    def client(self) -> AbstractImageGenerationClient:
        """The generation client, built on first access when lazy.

        Raises:
            ValidationAppError: If the factory cannot build a client
                (e.g. ``genai_missing_api_key``).
        """
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    @property
    def staged_images(self) -> list[UploadedImage]:
        return list(self._staged)

    @property
    def latest_result(self) -> GenerationResult | None:
        return self._latest

    @property
    def is_generating(self) -> bool:
        return self._in_flight

    def stage_images(self, images: Sequence[UploadedImage]) -> list[UploadedImage]:
        """Add images to the staged set, all or nothing.

        Raises:
            ValidationAppError: ``too_many_images`` if the total would exceed
                ``max_images``; the staged set is left unchanged.
        """
        if len(self._staged) + len(images) > self.max_images:
            logger.info(
                "workflow.stage_rejected",
                extra={"staged": len(self._staged), "requested": len(images)},
            )
            raise ValidationAppError(
                code="too_many_images",
                message=f"You can upload a maximum of {self.max_images} files.",
                details={
                    "max_images": self.max_images,
                    "staged": len(self._staged),
                    "requested": len(images),
                },
            )

        self._staged.extend(images)
        logger.info("workflow.images_staged", extra={"staged": len(self._staged)})
        return self.staged_images

    def remove_image(self, index: int) -> list[UploadedImage]:
        """Remove the staged image at ``index``.

        Raises:
            NotFoundAppError: If no image is staged at that index.
        """
        if not 0 <= index < len(self._staged):
            raise NotFoundAppError(
                code="image_not_found",
                message=f"No staged image at index {index}.",
                details={"index": index, "staged": len(self._staged)},
            )
        del self._staged[index]
        return self.staged_images

    def clear_images(self) -> None:
        self._staged.clear()

    def _check_submission(self, prompt: str) -> None:
        decision = self.limiter.check_and_consume()
        if not decision.allowed:
            raise RateLimitAppError(
                code="rate_limit_exceeded",
                message="Generation limit reached. Please try again later.",
                details={
                    "retry_after": decision.retry_after_seconds or 0,
                    "context": {"limit": decision.limit, "reset_at_ms": decision.reset_at_ms},
                },
            )

        if not prompt or not prompt.strip():
            raise ValidationAppError(
                code="empty_prompt",
                message="Please enter a prompt to describe your desired image.",
            )

    async def generate(self, prompt: str) -> GenerationResult:
        """Run one generation with the staged images.

        Args:
            prompt: Instruction text for the model.

        Returns:
            The generated image.

        Raises:
            ConflictAppError: A generation is already running.
            RateLimitAppError: The window's budget is spent.
            ValidationAppError: The prompt is blank, or no client can be built
                (missing credentials).
            GenerationAppError: The model call failed.
        """
        # No await between the check and the assignment: atomic on the event loop
        if self._in_flight:
            raise ConflictAppError(
                code="generation_in_progress",
                message="An image is already being generated. Please wait for it to finish.",
            )

        self._check_submission(prompt)

        client = self.client
        images = self.staged_images
        self._in_flight = True
        self._latest = None
        try:
            result = await client.generate(images, prompt)
        finally:
            self._in_flight = False

        self._latest = result
        try:
            state = self.limiter.record_success()
        except OSError as exc:
            # The image is already generated; it is returned even when the budget write failed
            logger.error(
                "workflow.budget_not_recorded",
                exc_info=exc,
                extra={"image_count": len(images), "error": str(exc)},
            )
            return result

        logger.info(
            "workflow.generation_completed",
            extra={
                "image_count": len(images),
                "remaining": state.requests_remaining,
            },
        )
        return result
