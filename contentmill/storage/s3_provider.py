# contentmill/storage/s3_provider.py
"""
S3 storage provider implementation using boto3.

Supports:
- AWS S3
- S3-compatible services (MinIO, Cloudflare R2, DigitalOcean Spaces, etc.)

Images are written once per article key and served from the public base URL.
"""

import logging
import os
from datetime import UTC, datetime
from typing import Optional, Dict

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from contentmill.storage.base import (
    ContentType,
    StorageMetadata,
    StorageProvider,
    compute_content_hash,
)

logger = logging.getLogger(__name__)


class S3StorageProvider(StorageProvider):
    """
    S3/S3-compatible storage provider.

    Configuration via environment:
    - S3_BUCKET: Bucket name (required)
    - S3_ENDPOINT_URL: Custom endpoint for S3-compatible services
    - S3_REGION: AWS region (default: us-east-1)
    - S3_PUBLIC_BASE_URL: Public URL prefix (CDN / bucket website)
    - AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY: credentials
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client=None,
    ):
        """
        Initialize S3 provider.

        Args:
            bucket: S3 bucket name (or S3_BUCKET env var)
            endpoint_url: Custom endpoint for S3-compatible services
            region: AWS region
            public_base_url: Prefix used to build public URLs
            client: Pre-built boto3 client (tests)
        """
        self._bucket = bucket or os.getenv("S3_BUCKET")
        if not self._bucket:
            raise ValueError("S3 bucket required. Set S3_BUCKET env var or pass bucket.")

        self._endpoint_url = endpoint_url or os.getenv("S3_ENDPOINT_URL")
        self._region = region or os.getenv("S3_REGION", "us-east-1")
        self._public_base_url = (public_base_url or os.getenv("S3_PUBLIC_BASE_URL") or "").rstrip("/")

        if client is None:
            config = Config(
                retries={"max_attempts": 3, "mode": "adaptive"},
                connect_timeout=5,
                read_timeout=30,
            )
            client = boto3.client(
                "s3",
                endpoint_url=self._endpoint_url,
                region_name=self._region,
                config=config,
            )
        self._client = client

        logger.info(f"S3 storage initialized: bucket={self._bucket}")

    @property
    def name(self) -> str:
        return "s3"

    @property
    def bucket(self) -> str:
        return self._bucket

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def upload(
        self,
        key: str,
        content: bytes,
        content_type: ContentType = ContentType.IMAGE_WEBP,
        metadata: Optional[Dict[str, str]] = None,
    ) -> StorageMetadata:
        """Upload content to S3. put_object overwrites any existing object."""
        content_hash = compute_content_hash(content)

        s3_metadata = dict(metadata or {})
        s3_metadata["content-hash"] = content_hash

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=content_type.value,
                Metadata=s3_metadata,
            )
        except ClientError as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise

        logger.debug(f"Uploaded to S3: {key} ({len(content)} bytes)")

        return StorageMetadata(
            uri=key,
            content_hash=content_hash,
            content_type=content_type,
            size_bytes=len(content),
            uploaded_at=datetime.now(UTC),
            public_url=self.public_url(key),
            custom_metadata=s3_metadata,
        )

