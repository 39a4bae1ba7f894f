# contentmill/constants.py
"""
Centralized magic constants organized by domain.

Thresholds here were carried over as-is from production tuning; their
derivation is not documented, so treat them as configuration rather than
derived values. Every consumer accepts an override in its constructor.
"""


class FilterDefaults:
    """Promotional-content heuristics."""

    # Any of these (case-insensitive, word-prefix match) marks an item promotional
    PROMOTIONAL_KEYWORDS = (
        "buy now",
        "shop now",
        "limited time",
        "discount",
        "promo",
        "sale",
        "coupon",
        "deal",
        "special price",
        "free shipping",
        "order now",
        "add to cart",
    )

    UPPERCASE_RATIO_THRESHOLD = 0.3     # Share of shouted tokens
    MAX_LINK_COUNT = 10                 # More <a> tags than this is link-farm content

    # Model-assisted escalation bars
    CURRENCY_CONFIDENCE_THRESHOLD = 0.6
    DEFAULT_CONFIDENCE_THRESHOLD = 0.75

    CLASSIFIER_INPUT_CHARS = 1500       # Body prefix sent to the classifier


class FingerprintDefaults:
    """SimHash near-duplicate detection."""

    BITS = 64
    DUPLICATE_THRESHOLD = 3             # Max Hamming distance for "same story"


class ExtractionDefaults:
    """Heuristic HTML extraction."""

    MIN_BODY_HTML_CHARS = 200           # Selector result must be longer than this
    FALLBACK_TITLE = "Untitled"


class RewriteDefaults:
    """Generative rewrite call."""

    MAX_INPUT_CHARS = 8000
    MAX_RETRIES = 3                     # After the initial attempt
    INITIAL_BACKOFF_SECONDS = 5.0
    BACKOFF_MULTIPLIER = 3.0            # 5s, 15s, 45s
    SOCIAL_COPY_MAX_CHARS = 200
    MAX_HASHTAGS = 10
    EXCERPT_FALLBACK_CHARS = 200


class ImageDefaults:
    """Image download and transcoding."""

    MAX_BYTES = 5 * 1024 * 1024
    MAX_WIDTH = 1200
    QUALITY = 80
    FORMAT = "WEBP"
    EXTENSION = "webp"


class BacklinkDefaults:
    """Fallback copy for backlink insertion."""

    LINK_TEXT = "Learn More"
    BANNER_TEXT = "Check out our latest content"
    INLINE_POSITION = 0.6               # Fraction of the way through the paragraphs


class SitemapDefaults:
    MAX_DEPTH = 3                       # Nested sitemapindex levels followed


UNCATEGORIZED = "Uncategorized"
