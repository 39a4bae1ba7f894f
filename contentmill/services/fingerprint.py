# contentmill/services/fingerprint.py
"""
Near-duplicate detection via 64-bit SimHash.

Dedupe rules:
1. Exact URL match per site (enforced at fetch time by a unique constraint)
2. Near-identical body text: SimHash fingerprints within a small Hamming
   distance of any published/pending item on the same site

Fingerprints are stored as 64-character '0'/'1' strings; character i is bit i
of the summed token hashes.
"""

import hashlib
import logging
import re

from sqlalchemy.orm import Session

from contentmill import models
from contentmill.constants import FingerprintDefaults

logger = logging.getLogger(__name__)


class Fingerprinter:
    """SimHash fingerprinting and comparison."""

    def __init__(
        self,
        bits: int = FingerprintDefaults.BITS,
        threshold: int = FingerprintDefaults.DUPLICATE_THRESHOLD,
    ):
        self.bits = bits
        self.threshold = threshold

    @staticmethod
    def normalize_text(text: str) -> str:
        """Normalize text for comparison."""
        if not text:
            return ""
        # Lowercase
        text = text.lower()
        # Punctuation becomes a word break
        text = re.sub(r"[^\w\s]", " ", text)
        # Collapse whitespace
        text = re.sub(r"\s+", " ", text).strip()
        return text

    @classmethod
    def tokenize(cls, text: str) -> list[str]:
        """Unigrams followed by bigrams of the normalized text."""
        words = cls.normalize_text(text).split()
        bigrams = [f"{a} {b}" for a, b in zip(words, words[1:])]
        return words + bigrams

    def token_hash(self, token: str) -> int:
        """First ``bits`` bits of the token's SHA-256 digest, big-endian."""
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        return int.from_bytes(digest[: self.bits // 8], "big")

    def compute(self, text: str) -> str:
        """
        Fingerprint ``text``.

        Identical text always yields the identical fingerprint. Text with no
        tokens yields all zeros.
        """
        counts = [0] * self.bits
        for token in self.tokenize(text):
            h = self.token_hash(token)
            for i in range(self.bits):
                counts[i] += 1 if (h >> i) & 1 else -1
        return "".join("1" if c > 0 else "0" for c in counts)

    @staticmethod
    def hamming_distance(a: str, b: str) -> int:
        """
        Count differing positions.

        Unequal lengths are right-padded with '0' to the longer length; with
        a fixed width this never happens, but stored fingerprints from an
        older width would still compare.
        """
        if len(a) != len(b):
            logger.warning(f"Comparing fingerprints of unequal width ({len(a)} vs {len(b)} bits)")
        width = max(len(a), len(b))
        a, b = a.ljust(width, "0"), b.ljust(width, "0")
        return sum(1 for x, y in zip(a, b) if x != y)

    def is_near_duplicate(self, a: str, b: str) -> bool:
        return self.hamming_distance(a, b) <= self.threshold

    @staticmethod
    def hash_content(text: str) -> str:
        """Generate SHA256 hash of text."""
        return hashlib.sha256((text or "").encode("utf-8")).hexdigest()

    def find_near_duplicate(
        self,
        db: Session,
        site_id,
        fingerprint: str,
        exclude_id=None,
    ) -> tuple[models.Article, int] | None:
        """
        Look for a published/pending item on the site within the threshold.

        Returns:
            (matching article, distance) for the closest match, or None
        """
        query = db.query(models.Article.id, models.Article.fingerprint).filter(
            models.Article.site_id == site_id,
            models.Article.status.in_([s.value for s in models.FINGERPRINT_POOL_STATUSES]),
            models.Article.fingerprint.isnot(None),
        )
        if exclude_id is not None:
            query = query.filter(models.Article.id != exclude_id)

        best_id, best_distance = None, None
        for article_id, other in query:
            distance = self.hamming_distance(fingerprint, other)
            if distance <= self.threshold and (best_distance is None or distance < best_distance):
                best_id, best_distance = article_id, distance
                if distance == 0:
                    break

        if best_id is None:
            return None
        return db.get(models.Article, best_id), best_distance
