import logging
import secrets
import string
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import List, Optional

from media_service.categories import Category, CategoryConfig, category_config, parse_category
from media_service.exceptions import (
    BackendUnavailable,
    ImageNotFound,
    StorageError,
    TransformError,
    ValidationError,
)
from media_service.image_service import transform as imaging
from media_service.image_service.models import (
    BatchUploadResult,
    FailedUpload,
    ImageInfo,
    IncomingFile,
    StoredImage,
)
from media_service.settings import Settings, settings as default_settings
from media_service.storage.base import StorageClient

log = logging.getLogger(__name__)

THUMBNAIL_PREFIX = "thumb_"
_ALPHABET = string.ascii_lowercase + string.digits

@dataclass
class PreparedImage:
    """A file that passed validation, with the bytes that will be stored."""
    original_name: str
    content_type: str
    data: bytes
    extension: str
    thumbnail: Optional[bytes] = None

def random_id(length: int = 11) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))

def generate_key(category: Category, extension: str) -> str:
    """``<category>/<epoch ms>-<random>.<ext>``. Never derived from the filename."""
    return f"{category.value}/{int(time.time() * 1000)}-{random_id()}{extension}"

def thumbnail_key(key: str) -> str:
    path = PurePosixPath(key)
    return str(path.with_name(THUMBNAIL_PREFIX + path.name))

def validate_file(file: IncomingFile, settings: Settings) -> imaging.ImageProbe:
    """Checks one upload before anything touches storage.

    Returns the decoded image's probe; the detected type must itself be
    allowed, so a renamed non-image cannot pass on its declared MIME type.
    """
    name = file.filename or ""
    if not name:
        raise ValidationError("File name is required")
    if len(name) > settings.max_filename_length:
        raise ValidationError(
            f"File name is too long (max {settings.max_filename_length} characters)"
        )
    if not file.data:
        raise ValidationError(f"File '{name}' is empty")
    if len(file.data) > settings.max_upload_size:
        limit_mb = settings.max_upload_size / (1024 * 1024)
        raise ValidationError(f"File '{name}' exceeds the size limit of {limit_mb:g} MB")
    if file.content_type not in settings.allowed_content_types:
        raise ValidationError(f"Unsupported content type: {file.content_type}")

    probe = imaging.probe(file.data)
    if probe.mime_type not in settings.allowed_content_types:
        raise ValidationError(f"Unsupported image type: {probe.mime_type}")
    return probe

def _original_extension(name: str, probe: imaging.ImageProbe) -> str:
    """The client's suffix if it names the detected format, else the canonical one."""
    suffix = PurePosixPath(name).suffix.lower()
    if suffix in imaging.FORMAT_SUFFIXES[probe.format]:
        return suffix
    return imaging.FORMAT_EXTENSION[probe.format]


class ImageService:
    """Validates, optimizes, stores, deletes and looks up category images.

    ``storage`` is ``None`` when the backend is not configured; every
    operation then fails with ``BackendUnavailable`` before doing any work.
    """

    def __init__(self, storage: Optional[StorageClient], settings: Settings = default_settings):
        self.storage = storage
        self.settings = settings

    def _require_storage(self) -> StorageClient:
        if self.storage is None:
            raise BackendUnavailable()
        return self.storage

    def _config(self, category: Category) -> CategoryConfig:
        return category_config(category, self.settings)

    def prepare(
        self,
        file: IncomingFile,
        profile: Optional[imaging.ImageProfile],
        with_thumbnail: bool = False,
    ) -> PreparedImage:
        """Validates and transforms a single file. ``profile=None`` keeps the bytes."""
        probe = validate_file(file, self.settings)
        name = file.filename or ""
        if profile is not None:
            data = imaging.transform(file.data, profile)
            fmt = imaging.normalize_format(profile.format)
            extension = imaging.FORMAT_EXTENSION[fmt]
            content_type = imaging.FORMAT_MIME[fmt.upper()]
        else:
            data = file.data
            fmt = probe.format
            extension = _original_extension(name, probe)
            content_type = probe.mime_type
        thumb = imaging.thumbnail(data, format=fmt) if with_thumbnail else None
        return PreparedImage(
            original_name=name,
            content_type=content_type,
            data=data,
            extension=extension,
            thumbnail=thumb,
        )

    def _ensure_bucket(self, storage: StorageClient, bucket: str) -> None:
        try:
            storage.ensure_bucket(bucket)
        except Exception as e:
            log.warning("Bucket check for %s failed: %s", bucket, e)

    def _store(
        self,
        storage: StorageClient,
        prepared: PreparedImage,
        category: Category,
        config: CategoryConfig,
    ) -> Optional[StoredImage]:
        key = generate_key(category, prepared.extension)
        result = storage.put(prepared.data, key, config.bucket, prepared.content_type)
        if result is None:
            return None
        image = StoredImage(
            url=result["url"],
            path=result["path"],
            filename=PurePosixPath(key).name,
            original_name=prepared.original_name,
            size=len(prepared.data),
            category=category,
            content_type=prepared.content_type,
            bucket=config.bucket,
        )
        if prepared.thumbnail is not None:
            thumb = storage.put(prepared.thumbnail, thumbnail_key(key), config.bucket, prepared.content_type)
            if thumb is None:
                log.warning("Thumbnail for %s was not stored", key)
            else:
                image.thumbnail_url = thumb["url"]
                image.thumbnail_path = thumb["path"]
        return image

    def upload_one(
        self,
        file: Optional[IncomingFile],
        category: Optional[str] = None,
        optimize: bool = True,
        width: Optional[int] = None,
        height: Optional[int] = None,
        quality: Optional[int] = None,
        format: Optional[str] = None,
    ) -> StoredImage:
        """Stores one image plus its thumbnail."""
        storage = self._require_storage()
        if file is None:
            raise ValidationError("No file uploaded")
        cat = parse_category(category)
        config = self._config(cat)

        profile = None
        if optimize:
            if format is not None and imaging.normalize_format(format) not in imaging.FORMAT_EXTENSION:
                raise ValidationError(f"Unsupported output format: {format}")
            profile = imaging.profile_for(config.width, config.height, width, height, quality, format)
        prepared = self.prepare(file, profile, with_thumbnail=True)

        self._ensure_bucket(storage, config.bucket)
        image = self._store(storage, prepared, cat, config)
        if image is None:
            raise StorageError("Failed to store image")
        log.info("Stored %s as %s/%s", prepared.original_name, config.bucket, image.path)
        return image

    def upload_many(
        self,
        files: List[IncomingFile],
        category: Optional[str] = None,
        optimize: bool = True,
    ) -> BatchUploadResult:
        """Stores up to ``max_batch_files`` images of one category.

        Every file is validated and transformed before the first write. A
        file that fails validation or storage goes to ``failed`` and the rest
        continue.
        """
        storage = self._require_storage()
        if not files:
            raise ValidationError("No files uploaded")
        if len(files) > self.settings.max_batch_files:
            raise ValidationError(
                f"Too many files: at most {self.settings.max_batch_files} per request"
            )
        cat = parse_category(category)
        config = self._config(cat)
        profile = imaging.profile_for(config.width, config.height) if optimize else None

        result = BatchUploadResult()
        prepared: List[PreparedImage] = []
        for file in files:
            try:
                prepared.append(self.prepare(file, profile))
            except (ValidationError, TransformError) as e:
                log.warning("Rejected %s: %s", file.filename, e.detail)
                result.failed.append(FailedUpload(original_name=file.filename or "", reason=e.detail))

        if not prepared:
            raise ValidationError(
                "No valid files to upload",
                failed=[f.original_name for f in result.failed],
            )

        self._ensure_bucket(storage, config.bucket)
        for item in prepared:
            image = self._store(storage, item, cat, config)
            if image is None:
                result.failed.append(
                    FailedUpload(original_name=item.original_name, reason="Failed to store image")
                )
            else:
                result.stored.append(image)

        if not result.stored:
            raise StorageError(
                "Failed to store any image",
                failed=[f.original_name for f in result.failed],
            )
        log.info("Stored %d of %d images in %s", len(result.stored), len(files), config.bucket)
        return result

    def delete(self, url: Optional[str], category: Optional[str] = None) -> None:
        """Removes an image and its thumbnail, addressed by public URL."""
        storage = self._require_storage()
        if not url:
            raise ValidationError("Image URL is required")
        cat = parse_category(category)
        config = self._config(cat)

        key = storage.url_to_key(url, config.bucket)
        if key is None:
            raise ValidationError("Could not resolve image path from URL")

        if not storage.remove(key, config.bucket):
            raise StorageError("Failed to delete image")
        storage.remove(thumbnail_key(key), config.bucket)
        log.info("Deleted %s/%s", config.bucket, key)

    def info(self, category: str, filename: str) -> ImageInfo:
        """Size, timestamps and URL of a stored image."""
        storage = self._require_storage()
        cat = parse_category(category, default=None)
        if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
            raise ValidationError("Invalid file name")
        config = self._config(cat)

        key = f"{cat.value}/{filename}"
        meta = storage.stat(key, config.bucket)
        if meta is None:
            raise ImageNotFound(filename)
        return ImageInfo(
            filename=filename,
            size=meta["size"],
            created_at=meta["created_at"],
            modified_at=meta["modified_at"],
            url=storage.public_url(config.bucket, key),
        )
