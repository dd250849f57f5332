"""
Generate Router

Submission endpoints. Both return immediately with a task handle; the work
runs on the background workers and is observed through /tasks.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ...config import Settings
from ...core.domain.task import GenerationInput, TaskKind
from ...core.exceptions import InvalidInput, UploadTooLarge
from ...core.services.generation_service import GenerationService
from ...schemas import TaskHandleResponse, TextToImageRequest
from ..dependencies import get_current_account_id, get_generation_service, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generate"])


@router.post("/text-to-image", response_model=TaskHandleResponse, status_code=201)
async def text_to_image(
    data: TextToImageRequest,
    account_id: int = Depends(get_current_account_id),
    service: GenerationService = Depends(get_generation_service)
):
    """
    Request a coloring page from a text prompt

    Raises:
        400: empty/too long prompt or unsupported ratio
        402: not enough credits
        503: queue full
    """
    handle = await service.submit(
        owner_id=account_id,
        kind=TaskKind.TEXT_TO_IMAGE,
        payload=GenerationInput(
            prompt=data.prompt,
            ratio=data.ratio,
            is_public=data.is_public
        )
    )
    return TaskHandleResponse.from_domain(handle)


@router.post("/image-to-image", response_model=TaskHandleResponse, status_code=201)
async def image_to_image(
    file: Optional[UploadFile] = File(None),
    ratio: str = Form("1:1"),
    is_public: bool = Form(False),
    account_id: int = Depends(get_current_account_id),
    service: GenerationService = Depends(get_generation_service),
    settings: Settings = Depends(get_settings)
):
    """
    Convert an uploaded picture into a coloring page

    Raises:
        400: missing file, disallowed type or unsupported ratio
        402: not enough credits
        413: file larger than max_upload_bytes
    """
    if file is None:
        raise InvalidInput("An image file is required", field="file")
    if file.content_type not in settings.allowed_upload_types:
        raise InvalidInput(
            f"Unsupported file type {file.content_type}; allowed: {settings.allowed_upload_types}",
            field="file"
        )

    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise UploadTooLarge(f"File exceeds {settings.max_upload_bytes} bytes")
    if not data:
        raise InvalidInput("Uploaded file is empty", field="file")

    handle = await asyncio.to_thread(service.store_reference, data, file.filename)

    task = await service.submit(
        owner_id=account_id,
        kind=TaskKind.IMAGE_TO_IMAGE,
        payload=GenerationInput(
            reference_image=handle,
            ratio=ratio,
            is_public=is_public,
            reference_name=file.filename
        )
    )
    return TaskHandleResponse.from_domain(task)
