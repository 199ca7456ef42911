import base64
from abc import ABC, abstractmethod
from typing import Sequence

from app.schemas.generation import (
    GenerationRequest,
    GenerationResult,
    ImagePart,
    TextPart,
    UploadedImage,
)


def encode_image(image: UploadedImage) -> ImagePart:
	"""Encode raw image bytes as a standard-alphabet base64 image part."""
	return ImagePart(
		data=base64.b64encode(image.data).decode("ascii"),
		mime_type=image.mime_type,
	)


def build_generation_request(images: Sequence[UploadedImage], prompt: str) -> GenerationRequest:
	"""Build the ordered content parts: every image in input order, then the prompt.

	The model reads images before the instruction that refers to them, so the
	text part is always last.
	"""
	parts: list[ImagePart | TextPart] = [encode_image(image) for image in images]
	parts.append(TextPart(text=prompt))
	return GenerationRequest(parts=parts)


class AbstractImageGenerationClient(ABC):
	"""Interface for clients that produce a single image from images + prompt."""

	@abstractmethod
	async def generate(
		self,
		images: Sequence[UploadedImage],
		prompt: str,
	) -> GenerationResult:
		"""Generate (or edit) an image.

		Args:
			images: Zero to three input images, in the order the prompt refers to them.
			prompt: Non-empty instruction text.

		Returns:
			GenerationResult: The first image returned by the model.

		Raises:
			GenerationAppError: On any transport, service or response problem.
		"""
		...
