# contentmill/storage/local_provider.py
"""
Local filesystem storage for development.

Writes images under a base directory using the same keys as S3; the
directory is expected to be served under LOCAL_STORAGE_PUBLIC_URL.
"""

import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from contentmill.storage.base import (
    ContentType,
    StorageMetadata,
    StorageProvider,
    compute_content_hash,
)

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    """
    Local filesystem storage provider.

    Configuration:
    - LOCAL_STORAGE_PATH: Base directory (default: ./storage)
    - LOCAL_STORAGE_PUBLIC_URL: URL prefix the directory is served under
    """

    def __init__(self, base_path: str | None = None, public_url_prefix: str | None = None):
        self._base_path = Path(base_path or os.getenv("LOCAL_STORAGE_PATH", "./storage"))
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._public_url_prefix = (public_url_prefix or os.getenv("LOCAL_STORAGE_PUBLIC_URL", "/media")).rstrip("/")

        logger.info(f"Local storage initialized: {self._base_path}")

    @property
    def name(self) -> str:
        return "local"

    def public_url(self, key: str) -> str:
        return f"{self._public_url_prefix}/{key}"

    def _get_path(self, key: str) -> Path:
        """Get filesystem path for key, with path traversal protection."""
        resolved = (self._base_path / key).resolve()
        if not resolved.is_relative_to(self._base_path.resolve()):
            raise ValueError("Path traversal detected")
        return resolved

    def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.IMAGE_WEBP,
        metadata: dict[str, str] | None = None,
    ) -> StorageMetadata:
        """Write content to the local filesystem, replacing any existing file."""
        file_path = self._get_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(content)

        logger.debug(f"Uploaded to local: {key} ({len(content)} bytes)")
        return StorageMetadata(
            uri=key,
            content_hash=compute_content_hash(content),
            content_type=content_type,
            size_bytes=len(content),
            uploaded_at=datetime.now(UTC),
            public_url=self.public_url(key),
            custom_metadata=metadata or {},
        )
