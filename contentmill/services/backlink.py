# contentmill/services/backlink.py
"""
Backlink Inserter.

Deterministically splices a sponsor link and/or banner into rewritten HTML.
An item at batch index i gets a backlink iff i % frequency == 0. All
interpolated text and URLs are HTML-escaped.
"""

import logging
import re
from dataclasses import dataclass

from contentmill.constants import BacklinkDefaults
from contentmill.models import PlacementMode
from contentmill.utils.html import escape_html

logger = logging.getLogger(__name__)

# Split after every closing paragraph tag, keeping the tag with its paragraph
_PARAGRAPH_SPLIT = re.compile(r"(?<=</p>)", re.IGNORECASE)
_PARAGRAPH_CLOSE = re.compile(r"</p>\s*$", re.IGNORECASE)

BANNER_STYLE = (
    "margin:32px 0;padding:24px;border-radius:12px;"
    "background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);"
    "color:#ffffff;text-align:center;"
)
BANNER_IMAGE_STYLE = "max-width:120px;height:auto;margin:0 auto 12px;display:block;border-radius:8px;"
BANNER_TEXT_STYLE = "margin:0 0 16px;font-size:18px;font-weight:600;"
BANNER_BUTTON_STYLE = (
    "display:inline-block;padding:10px 24px;border-radius:6px;"
    "background:#ffffff;color:#764ba2;font-weight:600;text-decoration:none;"
)


@dataclass
class BacklinkConfig:
    """Resolved per-site backlink settings."""

    target_url: str | None
    placement: PlacementMode = PlacementMode.INLINE
    frequency: int = 1
    link_text: str = BacklinkDefaults.LINK_TEXT
    banner_text: str = BacklinkDefaults.BANNER_TEXT
    banner_image_url: str | None = None
    enabled: bool = True

    @classmethod
    def from_model(cls, settings) -> "BacklinkConfig | None":
        """Build from a BacklinkSettings row; None when absent."""
        if settings is None:
            return None
        try:
            placement = PlacementMode(settings.placement_type or PlacementMode.INLINE.value)
        except ValueError:
            logger.warning(f"Unknown backlink placement '{settings.placement_type}', using inline")
            placement = PlacementMode.INLINE
        return cls(
            target_url=(settings.target_url or "").strip() or None,
            placement=placement,
            frequency=settings.frequency if settings.frequency is not None else 1,
            link_text=settings.link_text or BacklinkDefaults.LINK_TEXT,
            banner_text=settings.banner_text or BacklinkDefaults.BANNER_TEXT,
            banner_image_url=settings.banner_image_url or None,
            enabled=bool(settings.is_enabled),
        )


@dataclass
class BacklinkOutcome:
    content: str
    inserted: bool


class BacklinkInserter:
    """Apply backlink settings to rewritten content."""

    def __init__(self, inline_position: float = BacklinkDefaults.INLINE_POSITION):
        self.inline_position = inline_position

    @staticmethod
    def should_insert(index: int, frequency: int) -> bool:
        """Every Nth item starting at index 0. Frequencies below 1 act as 1."""
        return index % max(1, frequency) == 0

    def render_anchor(self, config: BacklinkConfig) -> str:
        return (
            f'<p class="backlink"><a href="{escape_html(config.target_url)}" '
            f'rel="sponsored noopener" target="_blank">{escape_html(config.link_text)}</a></p>'
        )

    def render_banner(self, config: BacklinkConfig) -> str:
        image = ""
        if config.banner_image_url:
            image = (
                f'<img src="{escape_html(config.banner_image_url)}" alt="" '
                f'style="{BANNER_IMAGE_STYLE}" />'
            )
        return (
            f'<div class="backlink-banner" style="{BANNER_STYLE}">'
            f"{image}"
            f'<p style="{BANNER_TEXT_STYLE}">{escape_html(config.banner_text)}</p>'
            f'<a href="{escape_html(config.target_url)}" rel="sponsored noopener" target="_blank" '
            f'style="{BANNER_BUTTON_STYLE}">{escape_html(config.link_text)}</a>'
            f"</div>"
        )

    def insert_inline(self, content: str, anchor: str) -> str | None:
        """Splice ``anchor`` after ~60% of the paragraphs; None if there are none."""
        pieces = _PARAGRAPH_SPLIT.split(content)
        closed = [i for i, piece in enumerate(pieces) if _PARAGRAPH_CLOSE.search(piece)]
        if not closed:
            return None

        count = len(closed)
        after = max(1, min(count, int((count + 1) * self.inline_position)))
        position = closed[after - 1] + 1
        return "".join(pieces[:position]) + anchor + "".join(pieces[position:])

    def apply(self, content: str, config: BacklinkConfig | None, index: int) -> BacklinkOutcome:
        """
        Insert the backlink for the item at batch ``index`` if it is due.

        Returns the (possibly) modified content and whether anything was inserted.
        """
        if config is None or not config.enabled or not config.target_url:
            return BacklinkOutcome(content, False)
        if not self.should_insert(index, config.frequency):
            return BacklinkOutcome(content, False)

        inserted = False
        if config.placement in (PlacementMode.INLINE, PlacementMode.BOTH):
            spliced = self.insert_inline(content, self.render_anchor(config))
            if spliced is not None:
                content = spliced
                inserted = True

        if config.placement in (PlacementMode.BANNER, PlacementMode.BOTH):
            content = content + self.render_banner(config)
            inserted = True

        return BacklinkOutcome(content, inserted)
