from typing import List, Optional
from dataclasses import dataclass
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from media_service.categories import Category

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

@dataclass
class IncomingFile:
    """One multipart file as read off the request."""
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes

class StoredImage(CamelModel):
    url: str
    path: str
    filename: str
    original_name: str
    size: int
    category: Category
    content_type: str
    bucket: str
    thumbnail_url: Optional[str] = None
    thumbnail_path: Optional[str] = None

class FailedUpload(CamelModel):
    original_name: str
    reason: str

class BatchUploadResult(CamelModel):
    stored: List[StoredImage] = []
    failed: List[FailedUpload] = []

class ImageInfo(CamelModel):
    filename: str
    size: int
    created_at: datetime
    modified_at: datetime
    url: str

class DeleteRequest(BaseModel):
    url: Optional[str] = None
    category: Optional[str] = None

class UploadResponse(CamelModel):
    success: bool = True
    message: str
    data: StoredImage

class BatchUploadResponse(CamelModel):
    success: bool
    message: str
    data: List[StoredImage]
    failed: List[str]

class DeleteResponse(CamelModel):
    success: bool = True
    message: str

class InfoResponse(CamelModel):
    success: bool = True
    message: str = "OK"
    data: ImageInfo
