"""Image generation adapter layer - abstracts over the hosted model service."""

from app.adapters.image_generation.base import (
    AbstractImageGenerationClient,
    build_generation_request,
    encode_image,
)
from app.adapters.image_generation.factory import create_image_generation_client
from app.adapters.image_generation.gemini_client import (
    GeminiImageClient,
    parse_generation_response,
)

__all__ = [
    "AbstractImageGenerationClient",
    "GeminiImageClient",
    "build_generation_request",
    "create_image_generation_client",
    "encode_image",
    "parse_generation_response",
]
