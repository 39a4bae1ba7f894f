# contentmill/services/content_extractor.py
"""
Heuristic article extraction from arbitrary HTML.

Given a page URL, downloads the HTML once and pulls out:
- title (og:title -> twitter:title -> first <h1> -> <title>)
- author (meta author -> author-class selectors -> "by <name>" byline)
- published time (article:published_time -> publish_date -> <time datetime>)
- representative image (og:image -> twitter:image -> content images -> first <img>)
- body, by trying structural selectors in order and falling back to <body>

The extracted body is sanitized before return. Any network or parse failure
propagates; the caller aborts that item, not the batch.
"""

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from contentmill.constants import ExtractionDefaults
from contentmill.services.feed_reader import parse_w3c_datetime
from contentmill.services.http_fetch import HttpFetcher
from contentmill.utils.html import clean_html, html_to_text, normalize_whitespace

logger = logging.getLogger(__name__)

# Page furniture removed before picking a body container
BOILERPLATE_SELECTORS = "script, style, nav, footer, noscript, .navigation, .sidebar, aside"

# Body containers, most specific first
BODY_SELECTORS = (
    "article",
    '[role="main"]',
    ".post-content",
    ".entry-content",
    ".article-content",
    ".content-main",
    "main",
    ".main-content",
)

AUTHOR_SELECTORS = (".author-name", ".by-author", '[rel="author"]')
CONTENT_IMAGE_SELECTORS = "article img, .post-content img, .entry-content img, main img, [role=main] img"
DATE_SELECTORS = "article time[datetime], .post-date time[datetime], time[datetime]"

BYLINE_PATTERN = re.compile(r"by\s+([^,\n]+)", re.IGNORECASE)


class ExtractionError(Exception):
    """Page HTML could not be turned into an article."""


@dataclass
class ExtractionResult:
    """Fields recovered from an article page."""

    title: str
    content: str
    author: str | None = None
    published_at: datetime | None = None
    image_url: str | None = None
    container: str = "body"  # Selector the body came from
    duration_ms: int = 0


def _meta(soup: BeautifulSoup, *, prop: str | None = None, name: str | None = None) -> str | None:
    attrs = {"property": prop} if prop else {"name": name}
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        value = tag["content"].strip()
        return value or None
    return None


class ContentExtractor:
    """Extract article fields from a URL or from already-downloaded HTML."""

    def __init__(self, fetcher: HttpFetcher, min_body_chars: int = ExtractionDefaults.MIN_BODY_HTML_CHARS):
        self._fetcher = fetcher
        self._min_body_chars = min_body_chars

    def extract(self, url: str) -> ExtractionResult:
        """
        Download ``url`` and extract its article.

        Raises:
            SourceUnreachable: page could not be fetched
            ExtractionError: page could not be parsed
        """
        start_time = time.time()
        html = self._fetcher.get_text(url, accept="text/html,application/xhtml+xml")
        result = self.extract_html(html, base_url=url)
        result.duration_ms = int((time.time() - start_time) * 1000)
        logger.debug(
            f"Extracted {len(result.content)} chars from {url} via {result.container} ({result.duration_ms}ms)"
        )
        return result

    def extract_html(self, html: str, base_url: str | None = None) -> ExtractionResult:
        try:
            soup = BeautifulSoup(html, "html.parser")

            title = self._title(soup)
            author = self._author(soup)
            published_at = self._published_at(soup)
            image_url = self._image(soup)
            if image_url and base_url:
                image_url = urljoin(base_url, image_url)

            for tag in soup.select(BOILERPLATE_SELECTORS):
                tag.decompose()
            container, body_html = self._body(soup)
        except Exception as e:
            raise ExtractionError(f"Failed to parse HTML{f' from {base_url}' if base_url else ''}: {e}") from e

        content = clean_html(body_html)
        if not html_to_text(content):
            raise ExtractionError(f"No article text found{f' at {base_url}' if base_url else ''}")

        return ExtractionResult(
            title=title,
            content=content,
            author=author,
            published_at=published_at,
            image_url=image_url,
            container=container,
        )

    @staticmethod
    def _title(soup: BeautifulSoup) -> str:
        title = _meta(soup, prop="og:title") or _meta(soup, name="twitter:title")
        if not title:
            h1 = soup.find("h1")
            if h1:
                title = normalize_whitespace(h1.get_text(" "))
        if not title and soup.title and soup.title.string:
            title = normalize_whitespace(soup.title.string)
        return title or ExtractionDefaults.FALLBACK_TITLE

    @staticmethod
    def _author(soup: BeautifulSoup) -> str | None:
        author = _meta(soup, name="author")
        if author:
            return author

        for selector in AUTHOR_SELECTORS:
            el = soup.select_one(selector)
            if el:
                text = normalize_whitespace(el.get_text(" "))
                if text:
                    return text

        byline = soup.select_one(".byline")
        if byline:
            match = BYLINE_PATTERN.search(byline.get_text(" "))
            if match:
                return match.group(1).strip()
        return None

    @staticmethod
    def _published_at(soup: BeautifulSoup) -> datetime | None:
        raw = _meta(soup, prop="article:published_time") or _meta(soup, name="publish_date")
        if not raw:
            time_el = soup.select_one(DATE_SELECTORS)
            raw = time_el.get("datetime") if time_el else None
        return parse_w3c_datetime(raw)

    @staticmethod
    def _image(soup: BeautifulSoup) -> str | None:
        image = _meta(soup, prop="og:image") or _meta(soup, name="twitter:image")
        if image:
            return image

        for img in soup.select(CONTENT_IMAGE_SELECTORS):
            if img.get("src"):
                return img["src"]

        first = soup.find("img", src=True)
        return first["src"] if first else None

    def _body(self, soup: BeautifulSoup) -> tuple[str, str]:
        for selector in BODY_SELECTORS:
            el = soup.select_one(selector)
            if el is not None:
                markup = el.decode_contents()
                if len(markup) > self._min_body_chars:
                    return selector, markup

        body = soup.body or soup
        return "body", body.decode_contents()
