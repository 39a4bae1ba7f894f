"""
Unit tests for the rewrite orchestrator: retry bounds and response parsing.
"""

import json
from unittest.mock import MagicMock

import pytest

from contentmill.services.resilience import LLMRateLimitError, LLMServiceError
from contentmill.services.rewriter import (
    MalformedRewriteResponse,
    Rewriter,
    RewriteRateLimited,
    normalize_hashtags,
)

VALID_RESPONSE = json.dumps({
    "title": "Sharpening Chisels the Easy Way",
    "content": "<p>Start with a flat stone.</p><p>Keep the angle steady.</p>",
    "excerpt": "A practical guide.",
    "metaDescription": "Learn to sharpen chisels.",
    "tags": ["chisels", "sharpening"],
    "category": "Hand Tools",
    "socialCopy": "Dull chisels? Not anymore.",
    "socialHashtags": ["#woodworking", "hand tools", "#Woodworking"],
})


def _rewriter(provider, sleeps=None) -> Rewriter:
    return Rewriter(provider, sleep=(sleeps.append if sleeps is not None else lambda _: None))


class TestRetryPolicy:
    """Rate-limit retries are bounded; other failures are terminal."""

    def test_rate_limit_exhausts_after_four_attempts(self):
        provider = MagicMock()
        provider.complete.side_effect = LLMRateLimitError("429 Too Many Requests")
        sleeps: list[float] = []

        with pytest.raises(RewriteRateLimited):
            _rewriter(provider, sleeps).rewrite("Title", "Body", "friendly")

        assert provider.complete.call_count == 4
        assert sleeps == [5, 15, 45]

    def test_foreign_rate_limit_error_is_retried(self):
        provider = MagicMock()
        provider.complete.side_effect = [RuntimeError("RESOURCE_EXHAUSTED: quota"), VALID_RESPONSE]
        sleeps: list[float] = []

        result = _rewriter(provider, sleeps).rewrite("Title", "Body", "friendly")

        assert result.title == "Sharpening Chisels the Easy Way"
        assert provider.complete.call_count == 2
        assert sleeps == [5]

    def test_service_error_not_retried(self):
        provider = MagicMock()
        provider.complete.side_effect = LLMServiceError("500 internal error")

        with pytest.raises(LLMServiceError):
            _rewriter(provider).rewrite("Title", "Body", "friendly")
        assert provider.complete.call_count == 1

    def test_malformed_response_not_retried(self):
        provider = MagicMock()
        provider.complete.return_value = "Sure! Here is your article."

        with pytest.raises(MalformedRewriteResponse):
            _rewriter(provider).rewrite("Title", "Body", "friendly")
        assert provider.complete.call_count == 1


class TestPrompts:
    """Prompt assembly."""

    def test_tone_brand_and_truncation(self):
        provider = MagicMock()
        provider.complete.return_value = VALID_RESPONSE
        rewriter = Rewriter(provider, max_input_chars=10)

        rewriter.rewrite("My Title", "x" * 50, "witty", brand_summary="Acme brand")

        system_prompt, user_prompt, call_type = provider.complete.call_args.args
        assert '"witty"' in system_prompt
        assert "Acme brand" in system_prompt
        assert "TITLE: My Title" in user_prompt
        assert "x" * 10 in user_prompt
        assert "x" * 11 not in user_prompt
        assert call_type == "rewrite"

    def test_missing_brand_uses_placeholder(self):
        system_prompt, _ = Rewriter(MagicMock()).build_prompts("T", "C", "formal", None)
        assert "No specific brand context provided" in system_prompt


class TestParseResponse:
    """Structured response handling."""

    def setup_method(self):
        self.rewriter = Rewriter(MagicMock())

    def test_full_response(self):
        result = self.rewriter.parse_response(VALID_RESPONSE, fallback_title="Original")
        assert result.category == "Hand Tools"
        assert result.tags == ["chisels", "sharpening"]
        assert result.social_hashtags == ["woodworking", "handtools"]

    def test_code_fence_tolerated(self):
        result = self.rewriter.parse_response(f"```json\n{VALID_RESPONSE}\n```", fallback_title="Original")
        assert result.title == "Sharpening Chisels the Easy Way"

    def test_missing_content_is_malformed(self):
        with pytest.raises(MalformedRewriteResponse):
            self.rewriter.parse_response(json.dumps({"title": "Only a title"}), fallback_title="Original")

    def test_json_array_is_malformed(self):
        with pytest.raises(MalformedRewriteResponse):
            self.rewriter.parse_response("[1, 2, 3]", fallback_title="Original")

    def test_fallbacks(self):
        result = self.rewriter.parse_response(json.dumps({"content": "<p>Body</p>"}), fallback_title="Original")
        assert result.title == "Original"
        assert result.category == "Uncategorized"
        assert result.social_copy == "Original"
        assert result.tags == []

    def test_social_copy_clipped(self):
        response = json.dumps({"content": "<p>Body</p>", "socialCopy": "y" * 500})
        assert len(self.rewriter.parse_response(response, "T").social_copy) == 200


class TestNormalizeHashtags:

    def test_limit(self):
        assert len(normalize_hashtags([f"tag{i}" for i in range(20)])) == 10

    def test_non_list_ignored(self):
        assert normalize_hashtags("#oops") == []
