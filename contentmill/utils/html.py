# contentmill/utils/html.py
"""
Shared HTML helpers used by the feed reader, extractor, filter and
backlink inserter.

Handles:
- Sanitizing extracted HTML (scripts, styles, iframes, event handlers, comments)
- Plain-text projection of HTML for fingerprinting and filtering
- Image discovery inside raw feed content
- URL-safe slugs
"""

import html
import re
import unicodedata

from bs4 import BeautifulSoup, Comment

# Tags removed wholesale from extracted bodies
UNSAFE_TAGS = ("script", "style", "iframe", "noscript")

# og:image inside raw feed content (either attribute order)
OG_IMAGE_PATTERN = re.compile(
    r"""<meta[^>]+(?:property|name)=["']og:image["'][^>]+content=["']([^"']+)["']"""
    r"""|<meta[^>]+content=["']([^"']+)["'][^>]+(?:property|name)=["']og:image["']""",
    re.IGNORECASE,
)
IMG_SRC_PATTERN = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

_WHITESPACE = re.compile(r"\s+")


def clean_html(fragment: str) -> str:
    """Strip scripts, styles, iframes, inline event handlers and comments."""
    if not fragment:
        return ""

    soup = BeautifulSoup(fragment, "html.parser")
    for tag in soup(list(UNSAFE_TAGS)):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        for attr in [a for a in tag.attrs if a.lower().startswith("on")]:
            del tag.attrs[attr]

    return str(soup).strip()


def html_to_text(fragment: str | None) -> str:
    """Visible text of an HTML fragment, whitespace collapsed."""
    if not fragment:
        return ""
    if "<" not in fragment:
        return normalize_whitespace(html.unescape(fragment))
    soup = BeautifulSoup(fragment, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return normalize_whitespace(soup.get_text(" "))


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def find_image_in_html(fragment: str | None) -> str | None:
    """First og:image meta tag, else first <img src>, found in raw content."""
    if not fragment:
        return None

    og_match = OG_IMAGE_PATTERN.search(fragment)
    if og_match:
        return og_match.group(1) or og_match.group(2)

    img_match = IMG_SRC_PATTERN.search(fragment)
    if img_match:
        return img_match.group(1)

    return None


def escape_html(value: str | None) -> str:
    """Escape &, <, >, " and ' for safe interpolation into markup."""
    return html.escape(value or "", quote=True)


def slugify(text: str, max_length: int = 80) -> str:
    """Lowercase ASCII slug with single hyphens between words."""
    if not text:
        return ""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    return slug[:max_length].rstrip("-")
