# contentmill/services/content_filter.py
"""
Promotional-content filter.

Deterministic first pass (no external calls):
1. Any promotional keyword in title or body text
2. More than 30% of whitespace-delimited tokens are shouted (ALL CAPS)
3. More than 10 hyperlinks in the body

Items passing the first pass are escalated to a model-assisted sales
classifier. A currency amount in the text lowers the confidence bar
(> 0.6 instead of > 0.75). The classifier fails open: if it is unavailable
the item is treated as not promotional.
"""

import logging
import re
from dataclasses import dataclass

from contentmill.constants import FilterDefaults
from contentmill.llm.base import LLMProvider, extract_json
from contentmill.llm.prompts import SALES_FILTER_SYSTEM_PROMPT, SALES_FILTER_USER_TEMPLATE
from contentmill.utils.html import html_to_text

logger = logging.getLogger(__name__)

ANCHOR_PATTERN = re.compile(r"<a\b", re.IGNORECASE)
CURRENCY_PATTERN = re.compile(
    r"[$€£¥]\s?\d[\d,]*(?:\.\d+)?"
    r"|\b\d[\d,]*(?:\.\d+)?\s?(?:usd|eur|gbp|dollars?|euros?|pounds?)\b",
    re.IGNORECASE,
)
_LETTERS = re.compile(r"[^A-Za-z]")


@dataclass
class SalesClassification:
    """Model verdict on whether content is sales material."""

    is_sales: bool
    confidence: float


@dataclass
class FilterDecision:
    """Outcome of filtering one item."""

    is_promotional: bool
    reason: str | None = None
    confidence: float = 0.0
    used_classifier: bool = False


class SalesClassifier:
    """Model-assisted binary sales/promotional classifier."""

    def __init__(self, provider: LLMProvider, max_chars: int = FilterDefaults.CLASSIFIER_INPUT_CHARS):
        self._provider = provider
        self._max_chars = max_chars

    def classify(self, title: str, text: str) -> SalesClassification:
        """Classify content. Never raises: failures return (False, 0.0)."""
        user_prompt = SALES_FILTER_USER_TEMPLATE.format(
            title=title or "",
            content=(text or "")[: self._max_chars],
        )
        try:
            response = self._provider.complete(SALES_FILTER_SYSTEM_PROMPT, user_prompt, call_type="sales_filter")
            data = extract_json(response)
            return SalesClassification(
                is_sales=bool(data.get("isSales", False)),
                confidence=float(data.get("confidence") or 0.0),
            )
        except Exception as e:
            logger.warning(f"Sales classifier unavailable, treating as not promotional: {e}")
            return SalesClassification(is_sales=False, confidence=0.0)


class ContentFilter:
    """Classify candidates as promotional using heuristics and an optional classifier."""

    def __init__(
        self,
        classifier: SalesClassifier | None = None,
        keywords: tuple[str, ...] = FilterDefaults.PROMOTIONAL_KEYWORDS,
        uppercase_ratio: float = FilterDefaults.UPPERCASE_RATIO_THRESHOLD,
        max_links: int = FilterDefaults.MAX_LINK_COUNT,
        currency_threshold: float = FilterDefaults.CURRENCY_CONFIDENCE_THRESHOLD,
        default_threshold: float = FilterDefaults.DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        self.classifier = classifier
        self.uppercase_ratio = uppercase_ratio
        self.max_links = max_links
        self.currency_threshold = currency_threshold
        self.default_threshold = default_threshold
        self._keyword_patterns = [
            (kw, re.compile(r"\b" + re.escape(kw.lower()))) for kw in keywords
        ]

    # -------------------------------------------------------------------------
    # Deterministic checks
    # -------------------------------------------------------------------------

    def matched_keyword(self, text: str) -> str | None:
        lowered = text.lower()
        for keyword, pattern in self._keyword_patterns:
            if pattern.search(lowered):
                return keyword
        return None

    @staticmethod
    def shouted_ratio(text: str) -> float:
        """Share of whitespace-delimited tokens that are all-caps words (2+ letters)."""
        tokens = text.split()
        if not tokens:
            return 0.0
        shouted = 0
        for token in tokens:
            letters = _LETTERS.sub("", token)
            if len(letters) > 1 and letters.isupper():
                shouted += 1
        return shouted / len(tokens)

    @staticmethod
    def link_count(content_html: str) -> int:
        return len(ANCHOR_PATTERN.findall(content_html or ""))

    @staticmethod
    def has_currency(text: str) -> bool:
        return bool(CURRENCY_PATTERN.search(text))

    def heuristic_decision(self, title: str, content_html: str) -> FilterDecision | None:
        """Promotional decision from heuristics alone, or None if they all pass."""
        text = f"{title or ''} {html_to_text(content_html)}".strip()

        keyword = self.matched_keyword(text)
        if keyword:
            return FilterDecision(True, reason=f"keyword:{keyword}", confidence=1.0)

        ratio = self.shouted_ratio(text)
        if ratio > self.uppercase_ratio:
            return FilterDecision(True, reason=f"uppercase_ratio:{ratio:.2f}", confidence=1.0)

        links = self.link_count(content_html)
        if links > self.max_links:
            return FilterDecision(True, reason=f"link_count:{links}", confidence=1.0)

        return None

    # -------------------------------------------------------------------------
    # Full evaluation
    # -------------------------------------------------------------------------

    def evaluate(self, title: str, content_html: str) -> FilterDecision:
        """Decide whether an item is promotional."""
        decision = self.heuristic_decision(title, content_html)
        if decision is not None:
            return decision

        if self.classifier is None:
            return FilterDecision(False)

        text = html_to_text(content_html)
        threshold = self.currency_threshold if self.has_currency(f"{title} {text}") else self.default_threshold
        verdict = self.classifier.classify(title, text)

        if verdict.is_sales and verdict.confidence > threshold:
            return FilterDecision(
                True,
                reason=f"classifier:{verdict.confidence:.2f}>{threshold}",
                confidence=verdict.confidence,
                used_classifier=True,
            )
        return FilterDecision(False, confidence=verdict.confidence, used_classifier=True)
