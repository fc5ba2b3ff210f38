from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Dict, List, Literal, Optional

DEFAULT_BUCKETS = {
    "restaurants": "restaurant-images",
    "menuItems": "menu-item-images",
    "offers": "offer-images",
    "categories": "category-images",
    "general": "general-images",
}

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",  # tolerate unknown vars if needed
    )

    app_title: str = Field("Food Media Service")
    api_prefix: str = Field("/api")
    log_level: str = Field("INFO")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # "s3" talks to any S3-compatible API (Supabase Storage, AWS, MinIO),
    # "local" writes to the filesystem
    storage_backend: Literal["s3", "local"] = Field("s3")

    storage_endpoint_url: Optional[str] = Field(None)
    storage_region: str = Field("us-east-1")
    storage_access_key_id: Optional[str] = Field(None)
    storage_secret_access_key: Optional[str] = Field(None)
    # Base for public object URLs, e.g. https://<project>.supabase.co/storage/v1/object/public
    storage_public_url: Optional[str] = Field(None)
    storage_cache_control: str = Field("max-age=3600")

    bucket_names: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BUCKETS))

    local_upload_dir: str = Field("uploads")
    local_public_prefix: str = Field("/uploads")

    max_upload_size: int = Field(5 * 1024 * 1024)
    allowed_content_types: List[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/jpg", "image/png", "image/webp"]
    )
    max_filename_length: int = Field(255)
    max_batch_files: int = Field(10)

    @property
    def storage_configured(self) -> bool:
        return bool(self.storage_access_key_id and self.storage_secret_access_key)

settings = Settings()
