# contentmill/services/feed_reader.py
"""
Feed Reader: turns RSS/Atom feeds and XML sitemaps into candidate items.

Feeds yield title, link, content, author, timestamp and a representative
image. Sitemaps yield URLs only (content-empty); the Content Extractor fills
in the rest later. Sitemap indexes are followed recursively, and a broken
child sitemap is skipped without aborting its siblings.
"""

import gzip
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import unquote, urlparse

import feedparser

from contentmill.constants import SitemapDefaults
from contentmill.models import SourceType
from contentmill.services.http_fetch import HttpFetcher, SourceUnreachable
from contentmill.utils.html import find_image_in_html

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml;q=0.9, */*;q=0.8"
SITEMAP_ACCEPT = "application/xml, text/xml;q=0.9, */*;q=0.8"

GZIP_MAGIC = b"\x1f\x8b"


class UnknownSourceKind(ValueError):
    """Source kind is neither feed nor sitemap."""


class SitemapParseError(Exception):
    """Sitemap document is not well-formed XML."""


@dataclass
class CandidateItem:
    """A feed/sitemap entry not yet persisted."""

    url: str
    title: str
    content: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    image_url: str | None = None
    content_empty: bool = False  # True for sitemap entries

    @property
    def text_for_hash(self) -> str:
        """Text the fetch-time content hash is computed over."""
        return self.content or self.title or ""


def _struct_to_datetime(value) -> datetime | None:
    if not value:
        return None
    try:
        return datetime(*value[:6], tzinfo=UTC)
    except (TypeError, ValueError):
        return None


def parse_w3c_datetime(value: str | None) -> datetime | None:
    """Parse a sitemap <lastmod> (W3C datetime, date-only allowed)."""
    if not value:
        return None
    value = value.strip()
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def title_from_url(url: str) -> str:
    """Readable provisional title from the last path segment of a URL."""
    parsed = urlparse(url)
    segment = unquote(parsed.path.rstrip("/").rsplit("/", 1)[-1])
    segment = re.sub(r"\.(html?|php|aspx?)$", "", segment, flags=re.IGNORECASE)
    words = re.sub(r"[-_+]+", " ", segment).strip()
    if not words:
        return parsed.hostname or url
    return words[0].upper() + words[1:]


def _local_name(tag: str) -> str:
    """Strip an XML namespace: '{ns}urlset' -> 'urlset'."""
    return tag.rsplit("}", 1)[-1]


class FeedReader:
    """Parse feeds and sitemaps into CandidateItem lists."""

    def __init__(self, fetcher: HttpFetcher, max_sitemap_depth: int = SitemapDefaults.MAX_DEPTH):
        self._fetcher = fetcher
        self._max_sitemap_depth = max_sitemap_depth

    def read(self, url: str, kind: str) -> list[CandidateItem]:
        """
        Fetch and parse a source.

        Raises:
            UnknownSourceKind: kind is not feed or sitemap
            SourceUnreachable: the top-level document could not be fetched
            SitemapParseError: the top-level sitemap is malformed
        """
        if kind == SourceType.FEED.value:
            return self.read_feed(url)
        if kind == SourceType.SITEMAP.value:
            return self.read_sitemap(url)
        raise UnknownSourceKind(f"Unknown source kind: {kind}")

    # -------------------------------------------------------------------------
    # Feeds
    # -------------------------------------------------------------------------

    def read_feed(self, url: str) -> list[CandidateItem]:
        response = self._fetcher.get(url, accept=FEED_ACCEPT)
        return self.parse_feed(response.content)

    def parse_feed(self, document: bytes | str) -> list[CandidateItem]:
        """Parse feed XML. Entries without a link are skipped."""
        feed = feedparser.parse(document)
        if feed.bozo and not feed.entries:
            logger.warning(f"Feed parsed with no entries: {feed.get('bozo_exception')}")

        items: list[CandidateItem] = []
        for entry in feed.entries:
            link = entry.get("link")
            if not link:
                continue

            content = None
            if entry.get("content"):
                content = entry["content"][0].get("value")
            content = content or entry.get("summary") or entry.get("description")

            items.append(
                CandidateItem(
                    url=link.strip(),
                    title=(entry.get("title") or "").strip() or title_from_url(link),
                    content=content,
                    author=entry.get("author") or entry.get("dc_creator"),
                    published_at=_struct_to_datetime(entry.get("published_parsed"))
                    or _struct_to_datetime(entry.get("updated_parsed")),
                    image_url=self._entry_image(entry, content),
                )
            )
        return items

    @staticmethod
    def _entry_image(entry, content: str | None) -> str | None:
        """
        Representative image, in priority order:
        media:content (image) -> media:thumbnail -> image enclosure ->
        og:image in content -> first <img> in content.
        """
        for media in entry.get("media_content") or []:
            media_url = media.get("url")
            medium = media.get("medium", "")
            media_type = media.get("type", "")
            if media_url and (medium == "image" or media_type.startswith("image/")):
                return media_url

        for thumb in entry.get("media_thumbnail") or []:
            if thumb.get("url"):
                return thumb["url"]

        for enclosure in entry.get("enclosures") or []:
            if (enclosure.get("type") or "").startswith("image/") and enclosure.get("href"):
                return enclosure["href"]

        return find_image_in_html(content)

    # -------------------------------------------------------------------------
    # Sitemaps
    # -------------------------------------------------------------------------

    def read_sitemap(self, url: str) -> list[CandidateItem]:
        return self._read_sitemap(url, depth=0, visited=set())

    def _read_sitemap(self, url: str, depth: int, visited: set[str]) -> list[CandidateItem]:
        visited.add(url)
        body = self._fetcher.get(url, accept=SITEMAP_ACCEPT).content
        root = self._parse_sitemap_xml(url, body)
        tag = _local_name(root.tag)

        if tag == "sitemapindex":
            items: list[CandidateItem] = []
            for loc in root.findall("./{*}sitemap/{*}loc"):
                child_url = (loc.text or "").strip()
                if not child_url or child_url in visited:
                    continue
                if depth + 1 > self._max_sitemap_depth:
                    logger.warning(f"Sitemap nesting too deep, skipping {child_url}")
                    continue
                try:
                    items.extend(self._read_sitemap(child_url, depth + 1, visited))
                except (SourceUnreachable, SitemapParseError) as e:
                    logger.warning(f"Skipping child sitemap {child_url}: {e}")
            return items

        if tag == "urlset":
            return self.parse_urlset(root)

        logger.warning(f"Unrecognised sitemap root <{tag}> at {url}")
        return []

    @staticmethod
    def _parse_sitemap_xml(url: str, body: bytes) -> ET.Element:
        if body[:2] == GZIP_MAGIC:
            try:
                body = gzip.decompress(body)
            except (OSError, EOFError) as e:
                raise SitemapParseError(f"{url}: bad gzip payload: {e}") from e
        try:
            return ET.fromstring(body)
        except ET.ParseError as e:
            raise SitemapParseError(f"{url}: {e}") from e

    @staticmethod
    def parse_urlset(root: ET.Element) -> list[CandidateItem]:
        items = []
        for url_el in root.findall("./{*}url"):
            loc = url_el.findtext("{*}loc")
            if not loc or not loc.strip():
                continue
            loc = loc.strip()
            items.append(
                CandidateItem(
                    url=loc,
                    title=title_from_url(loc),
                    published_at=parse_w3c_datetime(url_el.findtext("{*}lastmod")),
                    content_empty=True,
                )
            )
        return items
