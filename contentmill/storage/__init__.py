# contentmill/storage/__init__.py
"""
Storage provider abstraction for article images.

Featured images are stored in object storage (S3 or a local directory);
the datastore only keeps their public URL.
"""

from contentmill.storage.base import (
    ContentType,
    StorageMetadata,
    StorageProvider,
)
from contentmill.storage.factory import get_storage_provider
from contentmill.storage.local_provider import LocalStorageProvider
from contentmill.storage.s3_provider import S3StorageProvider

__all__ = [
    "StorageProvider",
    "StorageMetadata",
    "ContentType",
    "S3StorageProvider",
    "LocalStorageProvider",
    "get_storage_provider",
]
