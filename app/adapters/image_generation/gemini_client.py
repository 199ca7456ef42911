"""Gemini image generation client adapter."""

import asyncio
import base64
import logging
from typing import Any, Sequence

from google import genai
from google.genai import types

from app.adapters.image_generation.base import (
    AbstractImageGenerationClient,
    build_generation_request,
)
from app.core.errors import GenerationAppError
from app.schemas.generation import (
    GenerationRequest,
    GenerationResult,
    ImagePart,
    TextPart,
    UploadedImage,
)

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/png"

# Finish reasons that mean the model simply ended its turn
NORMAL_FINISH_REASONS = frozenset({"STOP", "FINISH_REASON_UNSPECIFIED"})


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def to_sdk_content(request: GenerationRequest) -> types.Content:
    """Convert the provider-agnostic request into a single user turn."""
    parts: list[types.Part] = []
    for part in request.parts:
        if isinstance(part, ImagePart):
            parts.append(
                types.Part.from_bytes(
                    data=base64.b64decode(part.data),
                    mime_type=part.mime_type,
                )
            )
        elif isinstance(part, TextPart):
            parts.append(types.Part.from_text(text=part.text))
        else:
            raise TypeError(f"Unsupported content part: {type(part).__name__}")
    return types.Content(role="user", parts=parts)


def parse_generation_response(response: types.GenerateContentResponse) -> GenerationResult:
    """Extract the first inline image of the first candidate.

    Args:
        response: Raw SDK response.

    Returns:
        GenerationResult with the image payload re-encoded as base64.

    Raises:
        GenerationAppError: If no image is present. The error names the
            finish reason when generation ended abnormally (safety block,
            malformed input, ...).
    """
    candidates = response.candidates or []

    if not candidates:
        block_reason = _enum_name(getattr(response.prompt_feedback, "block_reason", None))
        if block_reason:
            raise GenerationAppError(
                code="generation_blocked",
                message=f"The prompt was blocked by the image service (reason: {block_reason}).",
                details={"finish_reason": block_reason},
            )
        raise GenerationAppError(
            code="generation_no_image",
            message="No image produced. The service returned no candidates.",
        )

    candidate = candidates[0]
    parts = candidate.content.parts if candidate.content and candidate.content.parts else []

    for part in parts:
        inline_data = part.inline_data
        if inline_data is None or not inline_data.data:
            continue

        raw = inline_data.data
        payload = raw if isinstance(raw, str) else base64.b64encode(raw).decode("ascii")
        return GenerationResult(
            mime_type=inline_data.mime_type or DEFAULT_IMAGE_MIME_TYPE,
            data=payload,
        )

    finish_reason = _enum_name(candidate.finish_reason)
    if finish_reason and finish_reason not in NORMAL_FINISH_REASONS:
        raise GenerationAppError(
            code="generation_blocked",
            message=(
                f"Image generation stopped with finish reason {finish_reason}. "
                "This is usually caused by safety filtering or an unsupported input."
            ),
            details={"finish_reason": finish_reason},
        )

    raise GenerationAppError(
        code="generation_no_image",
        message="No image produced. Try rephrasing the prompt.",
    )


class GeminiImageClient(AbstractImageGenerationClient):
    """Client for Gemini image models (text+images in, image out).

    Uses the official google-genai SDK with async support. One request per
    call, no retries.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        """Initialize the Gemini async client.

        Args:
            api_key: Gemini API key.
            model: Model name (e.g., "gemini-2.5-flash-image").
            base_url: Optional custom API endpoint.
            timeout_seconds: Upper bound for one generation call.
        """
        http_options = types.HttpOptions(base_url=base_url) if base_url else None
        self.client = genai.Client(api_key=api_key, http_options=http_options)
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def generate(
        self,
        images: Sequence[UploadedImage],
        prompt: str,
    ) -> GenerationResult:
        """Generate an image from the staged images and prompt.

        Raises:
            GenerationAppError: On timeout, service/transport failure, or a
                response without an image.
        """
        request = build_generation_request(images, prompt)

        logger.info(
            "generation.started",
            extra={
                "model": self.model,
                "image_count": len(request.image_parts),
                "prompt_chars": len(prompt),
            },
        )

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model,
                    contents=to_sdk_content(request),
                    config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "generation.timeout",
                extra={"model": self.model, "timeout_s": self.timeout_seconds},
            )
            raise GenerationAppError(
                code="generation_timeout",
                message=f"Image generation timed out after {self.timeout_seconds:g} seconds.",
                details={"timeout_seconds": self.timeout_seconds, "model": self.model},
            ) from exc
        except Exception as exc:
            logger.error(
                "generation.failed",
                exc_info=exc,
                extra={"model": self.model, "error_type": type(exc).__name__},
            )
            raise GenerationAppError(
                code="generation_request_failed",
                message=f"Image generation service error: {exc}",
                details={"model": self.model},
            ) from exc

        try:
            result = parse_generation_response(response)
        except GenerationAppError as exc:
            logger.warning(
                "generation.no_image",
                extra={"model": self.model, "error_code": exc.code, "details": exc.details},
            )
            raise
        except (AttributeError, TypeError, ValueError) as exc:
            logger.error(
                "generation.malformed_response",
                exc_info=exc,
                extra={"model": self.model},
            )
            raise GenerationAppError(
                code="generation_malformed_response",
                message=f"Image generation service returned an unreadable response: {exc}",
                details={"model": self.model},
            ) from exc

        logger.info(
            "generation.succeeded",
            extra={"model": self.model, "mime_type": result.mime_type},
        )
        return result
