import logging
from typing import Optional

from fastapi import Request

from media_service.image_service.service import ImageService
from media_service.settings import Settings
from media_service.storage.base import StorageClient
from media_service.storage.local import LocalGateway
from media_service.storage.s3 import S3Gateway

log = logging.getLogger(__name__)

def create_storage_client(settings: Settings) -> Optional[StorageClient]:
    """Builds the configured gateway, or ``None`` when S3 credentials are missing."""
    if settings.storage_backend == "local":
        return LocalGateway(settings)
    if not settings.storage_configured:
        log.warning(
            "Storage credentials are not set; image uploads are disabled. "
            "Set STORAGE_ACCESS_KEY_ID and STORAGE_SECRET_ACCESS_KEY to enable them."
        )
        return None
    return S3Gateway(settings)

def get_image_service(request: Request) -> ImageService:
    """Dependency provider for ImageService"""
    return request.app.state.images
