from fastapi import APIRouter, Depends, UploadFile, File, Form, Response
from typing import List, Optional
import asyncio
import logging

from media_service.dependencies import get_image_service
from media_service.image_service.service import ImageService
from media_service.image_service.models import (
    IncomingFile,
    UploadResponse,
    BatchUploadResponse,
    DeleteRequest,
    DeleteResponse,
    InfoResponse,
)

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["food-media-service"]
)

async def read_upload(file: UploadFile, max_size: int) -> IncomingFile:
    """Reads at most one byte past ``max_size`` so oversized files are never fully buffered."""
    return IncomingFile(
        filename=file.filename,
        content_type=file.content_type,
        data=await file.read(max_size + 1),
    )

@router.post("/upload", response_model=UploadResponse)
async def upload_image(
    response: Response,
    image: Optional[UploadFile] = File(None),
    category: str = Form("general"),
    optimize: bool = Form(True),
    width: Optional[int] = Form(None, ge=1, le=4000),
    height: Optional[int] = Form(None, ge=1, le=4000),
    quality: Optional[int] = Form(None, ge=1, le=100),
    format: Optional[str] = Form(None),
    service: ImageService = Depends(get_image_service),
):
    """Uploads a single image, optimized for its category, plus a thumbnail."""
    response.headers["X-Content-Type-Options"] = "nosniff"

    limit = service.settings.max_upload_size
    incoming = await read_upload(image, limit) if image is not None else None
    stored = await asyncio.to_thread(
        service.upload_one,
        incoming,
        category=category,
        optimize=optimize,
        width=width,
        height=height,
        quality=quality,
        format=format,
    )
    return UploadResponse(message="Image uploaded successfully", data=stored)

@router.post("/upload-multiple", response_model=BatchUploadResponse)
async def upload_images(
    response: Response,
    images: Optional[List[UploadFile]] = File(None),
    category: str = Form("general"),
    optimize: bool = Form(True),
    service: ImageService = Depends(get_image_service),
):
    """Uploads up to ten images of one category; bad files are listed in ``failed``."""
    response.headers["X-Content-Type-Options"] = "nosniff"

    limit = service.settings.max_upload_size
    incoming = [await read_upload(f, limit) for f in images or []]
    result = await asyncio.to_thread(
        service.upload_many, incoming, category=category, optimize=optimize
    )
    message = f"Uploaded {len(result.stored)} image(s)"
    if result.failed:
        message += f", {len(result.failed)} failed"
    return BatchUploadResponse(
        success=bool(result.stored),
        message=message,
        data=result.stored,
        failed=[f.original_name for f in result.failed],
    )

@router.delete("/delete", response_model=DeleteResponse)
def delete_image(
    body: DeleteRequest,
    service: ImageService = Depends(get_image_service),
):
    """Deletes an image and its thumbnail by public URL."""
    service.delete(body.url, body.category)
    return DeleteResponse(message="Image deleted successfully")

@router.get("/info/{category}/{filename}", response_model=InfoResponse)
def image_info(
    category: str,
    filename: str,
    service: ImageService = Depends(get_image_service),
):
    """Gets size, timestamps and URL of a stored image."""
    return InfoResponse(data=service.info(category, filename))
