# contentmill/storage/base.py
"""
Storage provider interface for article images.

Design principles:
- Images live in object storage, the datastore keeps only their public URL
- Keys are deterministic per site/article so re-runs overwrite, never duplicate
- Providers expose a public URL for each key; clients fetch images directly
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict


class ContentType(str, Enum):
    """Image types the pipeline stores."""
    IMAGE_WEBP = "image/webp"
    IMAGE_JPEG = "image/jpeg"
    IMAGE_PNG = "image/png"


@dataclass
class StorageMetadata:
    """What was written by an upload."""
    uri: str  # Object key/path
    content_hash: str  # SHA256 of the stored bytes
    content_type: ContentType
    size_bytes: int
    uploaded_at: datetime
    public_url: Optional[str] = None
    custom_metadata: Dict[str, str] = field(default_factory=dict)


def compute_content_hash(content: bytes) -> str:
    """Compute SHA256 hash of content."""
    return hashlib.sha256(content).hexdigest()


class StorageProvider(ABC):
    """
    Abstract interface for image storage.

    Implementations must handle:
    - Upload that overwrites any existing object at the key
    - Public URL resolution for stored keys
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 's3', 'local')."""
        pass

    @abstractmethod
    def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.IMAGE_WEBP,
        metadata: Optional[Dict[str, str]] = None,
    ) -> StorageMetadata:
        """
        Upload content to storage, replacing any object already at ``key``.

        Args:
            key: Object key/path (e.g., "{site_id}/{article_id}/{article_id}.webp")
            content: Encoded image bytes
            content_type: MIME type of the content
            metadata: Custom metadata to attach

        Returns:
            StorageMetadata with upload details and public URL
        """
        pass

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public URL an end user can fetch ``key`` from."""
        pass

    def generate_image_key(
        self,
        site_id: str,
        article_id: str,
        extension: str = "webp",
    ) -> str:
        """
        Generate the storage key for an article's featured image.

        Format: {site_id}/{article_id}/{article_id}.{extension}
        """
        return f"{site_id}/{article_id}/{article_id}.{extension}"
