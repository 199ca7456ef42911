"""Factory for the configured image generation client."""

from app.adapters.image_generation.base import AbstractImageGenerationClient
from app.adapters.image_generation.gemini_client import GeminiImageClient
from app.core.config import settings
from app.core.errors import ValidationAppError


def create_image_generation_client() -> AbstractImageGenerationClient:
    """Instantiate the Gemini image client from settings.

    The API key is taken only from GENAI_API_KEY; there is no implicit
    credential lookup.

    Returns:
        AbstractImageGenerationClient: Configured client instance.

    Raises:
        ValidationAppError: If the API key is not configured.
    """
    if not settings.genai.api_key:
        raise ValidationAppError(
            code="genai_missing_api_key",
            message="Image generation requires the GENAI_API_KEY environment variable",
        )

    return GeminiImageClient(
        api_key=settings.genai.api_key,
        model=settings.genai.model,
        base_url=settings.genai.base_url,
        timeout_seconds=settings.genai.timeout_seconds,
    )
