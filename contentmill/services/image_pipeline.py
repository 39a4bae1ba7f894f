# contentmill/services/image_pipeline.py
"""
Download, shrink and re-host article images.

Flow:
1. Download with a bounded timeout and a hard size ceiling
2. Resize to a maximum width (aspect preserved, never upscaled)
3. Re-encode as WebP at a fixed quality
4. Upload to object storage at {site_id}/{article_id}/{article_id}.webp,
   overwriting any previous object
5. Return the public URL

Image hosting is best-effort: every failure returns None.
"""

import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from contentmill.constants import ImageDefaults
from contentmill.logging_config import log_storage_operation
from contentmill.services.http_fetch import HttpFetcher, PayloadTooLarge, SourceUnreachable
from contentmill.storage.base import ContentType, StorageProvider
from contentmill.storage.factory import get_storage_provider

logger = logging.getLogger(__name__)


class ImagePipeline:
    """Fetch a remote image and persist a compressed copy."""

    def __init__(
        self,
        fetcher: HttpFetcher,
        storage: StorageProvider | None = None,
        max_bytes: int = ImageDefaults.MAX_BYTES,
        max_width: int = ImageDefaults.MAX_WIDTH,
        quality: int = ImageDefaults.QUALITY,
    ):
        self._fetcher = fetcher
        self._storage = storage
        self.max_bytes = max_bytes
        self.max_width = max_width
        self.quality = quality

    @property
    def storage(self) -> StorageProvider:
        """Lazy-load storage provider."""
        if self._storage is None:
            self._storage = get_storage_provider()
        return self._storage

    def transcode(self, data: bytes) -> bytes:
        """Resize to max width and re-encode as WebP."""
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)

            if img.mode not in ("RGB", "RGBA"):
                has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
                img = img.convert("RGBA" if has_alpha else "RGB")

            if img.width > self.max_width:
                height = max(1, round(img.height * self.max_width / img.width))
                img = img.resize((self.max_width, height), Image.Resampling.LANCZOS)

            out = io.BytesIO()
            img.save(out, format=ImageDefaults.FORMAT, quality=self.quality, method=4)
            return out.getvalue()

    def store(self, image_url: str | None, site_id, article_id) -> str | None:
        """
        Re-host ``image_url`` for an article.

        Returns:
            Public URL of the stored copy, or None on any failure
        """
        if not image_url:
            return None

        try:
            data, _ = self._fetcher.get_bytes(image_url, max_bytes=self.max_bytes)
            encoded = self.transcode(data)

            key = self.storage.generate_image_key(str(site_id), str(article_id), ImageDefaults.EXTENSION)
            with log_storage_operation("upload", key) as metrics:
                stored = self.storage.upload(
                    key,
                    encoded,
                    content_type=ContentType.IMAGE_WEBP,
                    metadata={"article-id": str(article_id)},
                )
                metrics["size_bytes"] = len(encoded)

            return stored.public_url or self.storage.public_url(key)

        except PayloadTooLarge as e:
            logger.info(f"Image skipped for article {article_id}: {e}")
        except SourceUnreachable as e:
            logger.info(f"Image download failed for article {article_id}: {e}")
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning(f"Image decode failed for article {article_id} ({image_url}): {e}")
        except Exception as e:
            logger.warning(f"Image storage failed for article {article_id}: {e}")
        return None
