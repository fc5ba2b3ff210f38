"""Storage client interface shared by the S3 and filesystem gateways."""

from typing import Dict, Optional, Protocol, runtime_checkable
from urllib.parse import unquote, urlparse


@runtime_checkable
class StorageClient(Protocol):
    """Object storage operations used by the image service.

    Implementations never raise on backend failures: writes return ``None``,
    deletes return ``False`` and lookups return ``None``. Callers check the
    returned sentinel.
    """

    def ensure_bucket(self, bucket: str) -> None:
        """Create ``bucket`` with public-read access if it does not exist."""
        ...

    def put(self, data: bytes, key: str, bucket: str, content_type: str) -> Optional[Dict[str, str]]:
        """Store ``data`` under ``key``, replacing any existing object.

        Returns:
            ``{"url": <public url>, "path": <key>}`` or ``None`` on failure.
        """
        ...

    def remove(self, key: str, bucket: str) -> bool:
        """Delete ``key``. A key that does not exist counts as deleted."""
        ...

    def public_url(self, bucket: str, key: str) -> str:
        ...

    def url_to_key(self, url: str, bucket: str) -> Optional[str]:
        """Inverse of ``public_url``; ``None`` if the URL is outside the bucket."""
        ...

    def stat(self, key: str, bucket: str) -> Optional[Dict]:
        """Return ``{"size", "created_at", "modified_at"}`` or ``None``."""
        ...

    def close(self) -> None:
        ...


def key_from_public_url(url: str, bucket_url: str) -> Optional[str]:
    """Strips the bucket's public URL path from ``url``.

    Only the path is compared so the same object resolves through a CDN
    host or the storage host. Query strings (cache busters) are ignored.
    """
    if not url:
        return None
    marker = urlparse(bucket_url.rstrip("/") + "/").path
    path = urlparse(url).path
    if not path.startswith(marker):
        return None
    key = unquote(path[len(marker):])
    if not key or key.startswith("/") or ".." in key.split("/"):
        return None
    return key
