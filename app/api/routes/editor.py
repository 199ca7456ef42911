import mimetypes
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from app.adapters.image_generation.factory import create_image_generation_client
from app.core.config import settings
from app.core.errors import NotFoundAppError
from app.core.file_validation import read_uploaded_image
from app.core.rate_limit import get_rate_limiter
from app.schemas.generation import (
    GenerationResponse,
    RateLimitStatus,
    StagedImageInfo,
    StagedImagesResponse,
    UploadedImage,
)
from app.services.rate_limiter import RateLimiter
from app.services.workflow_service import ImageEditorWorkflow

router = APIRouter(tags=["Editor"])

_workflow: ImageEditorWorkflow | None = None


def get_workflow() -> ImageEditorWorkflow:
    """Return the process-wide workflow, creating it on first use.

    The model client is only built on the first generation, so staging
    images works without GENAI_API_KEY.
    """
    global _workflow
    if _workflow is None:
        _workflow = ImageEditorWorkflow(
            client=None,
            client_factory=create_image_generation_client,
            limiter=get_rate_limiter(),
            max_images=settings.app.max_images,
        )
    return _workflow


def _staged_response(workflow: ImageEditorWorkflow, images: list[UploadedImage]) -> StagedImagesResponse:
    return StagedImagesResponse(
        images=[
            StagedImageInfo(
                index=index,
                filename=image.filename,
                mime_type=image.mime_type,
                size_bytes=len(image.data),
            )
            for index, image in enumerate(images)
        ],
        max_images=workflow.max_images,
    )


@router.get("/images", response_model=StagedImagesResponse)
def list_images(
    workflow: Annotated[ImageEditorWorkflow, Depends(get_workflow)],
) -> StagedImagesResponse:
    """List the images staged for the next generation."""
    return _staged_response(workflow, workflow.staged_images)


@router.post("/images", response_model=StagedImagesResponse)
async def stage_images(
    workflow: Annotated[ImageEditorWorkflow, Depends(get_workflow)],
    files: list[UploadFile] = File(..., description="Image files (PNG, JPG, WEBP, ...)"),
) -> StagedImagesResponse:
    """Stage uploaded images.

    All files are validated before any is staged; exceeding the image limit
    rejects the whole upload and keeps the current images.
    """
    images = [await read_uploaded_image(file) for file in files]
    return _staged_response(workflow, workflow.stage_images(images))


@router.delete("/images/{index}", response_model=StagedImagesResponse)
def remove_image(
    index: int,
    workflow: Annotated[ImageEditorWorkflow, Depends(get_workflow)],
) -> StagedImagesResponse:
    return _staged_response(workflow, workflow.remove_image(index))


@router.delete("/images", response_model=StagedImagesResponse)
def clear_images(
    workflow: Annotated[ImageEditorWorkflow, Depends(get_workflow)],
) -> StagedImagesResponse:
    workflow.clear_images()
    return _staged_response(workflow, [])


@router.post("/generate", response_model=GenerationResponse)
async def generate_image(
    workflow: Annotated[ImageEditorWorkflow, Depends(get_workflow)],
    prompt: str = Form("", description="Describe the image to create or the edit to apply."),
) -> GenerationResponse:
    """Generate an image from the staged images and the prompt.

    Errors (limit reached, empty prompt, generation in progress, service
    failure) are returned by the global error handlers.
    """
    result = await workflow.generate(prompt)
    return GenerationResponse(
        data_uri=result.data_uri,
        mime_type=result.mime_type,
        rate_limit=workflow.limiter.status(),
    )


@router.get(
    "/generate/latest",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
def download_latest(
    workflow: Annotated[ImageEditorWorkflow, Depends(get_workflow)],
) -> Response:
    """Download the most recently generated image as a file."""
    result = workflow.latest_result
    if result is None:
        raise NotFoundAppError(
            code="no_generated_image",
            message="No image has been generated yet.",
        )

    extension = mimetypes.guess_extension(result.mime_type) or ".png"
    return Response(
        content=result.image_bytes,
        media_type=result.mime_type,
        headers={"Content-Disposition": f'attachment; filename="generated-image{extension}"'},
    )


@router.get("/rate-limit", response_model=RateLimitStatus)
def rate_limit_status(
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> RateLimitStatus:
    """Current generation budget and, while exhausted, the countdown to reset."""
    return limiter.status()
