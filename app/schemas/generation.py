"""Pydantic schemas for image staging and generation."""

from __future__ import annotations

import base64
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator


class UploadedImage(BaseModel):
    """An image staged by the user for the next generation."""

    data: bytes = Field(..., description="Raw image bytes.")
    mime_type: str = Field(..., description="MIME type, e.g. 'image/png'.")
    filename: str | None = Field(default=None, description="Original filename, if provided.")


class ImagePart(BaseModel):
    """Inline image content part (base64 payload, standard alphabet)."""

    kind: Literal["image"] = "image"
    data: str = Field(..., description="Base64-encoded image bytes.")
    mime_type: str = Field(..., description="MIME type of the encoded image.")


class TextPart(BaseModel):
    """Plain text content part."""

    kind: Literal["text"] = "text"
    text: str


ContentPart = Annotated[Union[ImagePart, TextPart], Field(discriminator="kind")]


class GenerationRequest(BaseModel):
    """Ordered content parts sent to the model: images first, prompt last."""

    parts: list[ContentPart]

    @model_validator(mode="after")
    def _images_then_single_text(self) -> "GenerationRequest":
        if not self.parts or not isinstance(self.parts[-1], TextPart):
            raise ValueError("request must end with exactly one text part")
        if any(not isinstance(part, ImagePart) for part in self.parts[:-1]):
            raise ValueError("only image parts may precede the text part")
        return self

    @property
    def image_parts(self) -> list[ImagePart]:
        return [part for part in self.parts if isinstance(part, ImagePart)]

    @property
    def text_part(self) -> TextPart:
        return self.parts[-1]  # type: ignore[return-value]


class GenerationResult(BaseModel):
    """A generated image, ready to be used as an image source."""

    mime_type: str
    data: str = Field(..., description="Base64-encoded image bytes.")

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"

    @property
    def image_bytes(self) -> bytes:
        return base64.b64decode(self.data)


class StagedImageInfo(BaseModel):
    index: int
    filename: str | None = None
    mime_type: str
    size_bytes: int


class StagedImagesResponse(BaseModel):
    """Currently staged images (metadata only)."""

    images: list[StagedImageInfo] = Field(default_factory=list)
    max_images: int


class RateLimitStatus(BaseModel):
    """Snapshot of the generation budget."""

    limit: int = Field(..., description="Generations allowed per window.")
    remaining: int = Field(..., description="Generations left in the current window.")
    reset_at_ms: int | None = Field(
        default=None,
        description="Epoch milliseconds when the window resets; null before the first generation.",
    )
    countdown: str = Field(
        default="",
        description="MM:SS until reset while the budget is exhausted, otherwise empty.",
    )


class GenerationResponse(BaseModel):
    """Result of POST /v1/generate."""

    data_uri: str
    mime_type: str
    rate_limit: RateLimitStatus
