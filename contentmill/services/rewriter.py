# contentmill/services/rewriter.py
"""
Rewrite Orchestrator: one generative call per item.

Produces the rewritten article, a category suggestion and social copy in a
single structured response. Rate-limit failures are retried with exponential
backoff (5s, 15s, 45s); any other failure, including an unparseable
response, is terminal for the item and not retried.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from tenacity import RetryError

from contentmill.constants import UNCATEGORIZED, RewriteDefaults
from contentmill.llm.base import LLMProvider, extract_json
from contentmill.llm.prompts import NO_BRAND_CONTEXT, REWRITE_SYSTEM_PROMPT, REWRITE_USER_TEMPLATE
from contentmill.services.resilience import rate_limit_retrying

logger = logging.getLogger(__name__)


class RewriteError(Exception):
    """Base class for terminal rewrite failures."""


class MalformedRewriteResponse(RewriteError):
    """The service answered, but not with a usable JSON article."""


class RewriteRateLimited(RewriteError):
    """Still rate limited after every retry."""


@dataclass
class RewriteResult:
    """Structured output of a rewrite call."""

    title: str
    content: str
    excerpt: str
    meta_description: str
    tags: list[str] = field(default_factory=list)
    category: str = UNCATEGORIZED
    social_copy: str = ""
    social_hashtags: list[str] = field(default_factory=list)


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def normalize_hashtags(tags, limit: int = RewriteDefaults.MAX_HASHTAGS) -> list[str]:
    """Strip leading '#', drop inner whitespace, de-duplicate case-insensitively."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in _string_list(tags):
        cleaned = "".join(tag.lstrip("#").split())
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
        if len(result) >= limit:
            break
    return result


class Rewriter:
    """Rewrite articles through a generative text provider."""

    def __init__(
        self,
        provider: LLMProvider,
        max_input_chars: int = RewriteDefaults.MAX_INPUT_CHARS,
        max_retries: int = RewriteDefaults.MAX_RETRIES,
        initial_backoff: float = RewriteDefaults.INITIAL_BACKOFF_SECONDS,
        backoff_multiplier: float = RewriteDefaults.BACKOFF_MULTIPLIER,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.max_input_chars = max_input_chars
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.backoff_multiplier = backoff_multiplier
        self._sleep = sleep

    def build_prompts(self, title: str, content: str, tone: str, brand_summary: str | None) -> tuple[str, str]:
        system_prompt = REWRITE_SYSTEM_PROMPT.format(
            tone=tone,
            brand_context=brand_summary or NO_BRAND_CONTEXT,
        )
        user_prompt = REWRITE_USER_TEMPLATE.format(
            title=title,
            content=(content or "")[: self.max_input_chars],
        )
        return system_prompt, user_prompt

    def rewrite(
        self,
        title: str,
        content: str,
        tone: str,
        brand_summary: str | None = None,
    ) -> RewriteResult:
        """
        Rewrite one article.

        Raises:
            RewriteRateLimited: rate limited on every attempt
            MalformedRewriteResponse: response could not be parsed
            LLMServiceError / LLMTimeoutError: other provider failures, not retried
        """
        system_prompt, user_prompt = self.build_prompts(title, content, tone, brand_summary)
        retrying = rate_limit_retrying(
            max_retries=self.max_retries,
            initial_backoff=self.initial_backoff,
            backoff_multiplier=self.backoff_multiplier,
            sleep=self._sleep,
        )

        try:
            response = retrying(self.provider.complete, system_prompt, user_prompt, "rewrite")
        except RetryError as e:
            last = e.last_attempt.exception()
            raise RewriteRateLimited(
                f"Rate limited after {self.max_retries + 1} attempts: {last}"
            ) from last

        return self.parse_response(response, fallback_title=title)

    def parse_response(self, response: str, fallback_title: str) -> RewriteResult:
        try:
            data = extract_json(response)
        except ValueError as e:
            raise MalformedRewriteResponse(str(e)) from e

        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise MalformedRewriteResponse("Response has no rewritten content")

        title = str(data.get("title") or "").strip() or fallback_title
        social_copy = str(data.get("socialCopy") or title).strip()

        return RewriteResult(
            title=title,
            content=content.strip(),
            excerpt=str(data.get("excerpt") or "").strip(),
            meta_description=str(data.get("metaDescription") or "").strip(),
            tags=_string_list(data.get("tags")),
            category=str(data.get("category") or "").strip() or UNCATEGORIZED,
            social_copy=social_copy[: RewriteDefaults.SOCIAL_COPY_MAX_CHARS],
            social_hashtags=normalize_hashtags(data.get("socialHashtags")),
        )
