"""Filesystem deployment profile for image storage."""
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

from media_service.settings import Settings
from media_service.storage.base import key_from_public_url

log = logging.getLogger(__name__)


class LocalGateway:
    """Stores objects as files under ``<root>/<bucket>/<key>``.

    Public URLs are ``<public_prefix>/<bucket>/<key>``; the app mounts the
    root directory as static files under that prefix.
    """

    def __init__(self, settings: Settings, root: Optional[str | Path] = None):
        self.settings = settings
        self.root = Path(root) if root is not None else Path(settings.local_upload_dir)
        self.public_prefix = settings.local_public_prefix.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)
        log.info("Initialized LocalGateway with root: %s", self.root)

    def _path(self, bucket: str, key: str) -> Path:
        return self.root / bucket / key

    def ensure_bucket(self, bucket: str) -> None:
        try:
            (self.root / bucket).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.error("Failed to create bucket directory %s: %s", bucket, e)

    def put(self, data: bytes, key: str, bucket: str, content_type: str) -> Optional[Dict[str, str]]:
        path = self._path(bucket, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            log.error("Failed to write %s: %s", path, e)
            return None
        log.debug("Saved image to: %s", path)
        return {"url": self.public_url(bucket, key), "path": key}

    def remove(self, key: str, bucket: str) -> bool:
        path = self._path(bucket, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.error("Failed to delete %s: %s", path, e)
            return False
        return True

    def public_url(self, bucket: str, key: str) -> str:
        return f"{self.public_prefix}/{bucket}/{quote(key)}"

    def url_to_key(self, url: str, bucket: str) -> Optional[str]:
        return key_from_public_url(url, f"{self.public_prefix}/{bucket}")

    def stat(self, key: str, bucket: str) -> Optional[Dict]:
        path = self._path(bucket, key)
        if not path.is_file():
            return None
        try:
            st = path.stat()
        except OSError as e:
            log.error("Failed to stat %s: %s", path, e)
            return None
        return {
            "size": st.st_size,
            "created_at": datetime.fromtimestamp(st.st_ctime, tz=timezone.utc),
            "modified_at": datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        }

    def close(self):
        log.info("Closed LocalGateway")
