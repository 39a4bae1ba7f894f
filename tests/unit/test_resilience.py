"""
Unit tests for rate-limit detection and the retry policy.
"""

import pytest
from tenacity import RetryError

from contentmill.services.resilience import (
    LLMRateLimitError,
    LLMServiceError,
    LLMTimeoutError,
    is_rate_limit_error,
    rate_limit_retrying,
)


class TestIsRateLimitError:

    def test_provider_error(self):
        assert is_rate_limit_error(LLMRateLimitError("slow down"))

    @pytest.mark.parametrize("message", [
        "HTTP 429",
        "Too Many Requests",
        "RESOURCE_EXHAUSTED: quota exceeded",
    ])
    def test_foreign_errors_by_marker(self, message):
        assert is_rate_limit_error(RuntimeError(message))

    def test_other_errors(self):
        assert not is_rate_limit_error(LLMServiceError("500 server error"))
        assert not is_rate_limit_error(LLMTimeoutError("timed out"))


class TestRateLimitRetrying:

    def test_waits_grow_geometrically(self):
        sleeps: list[float] = []
        calls = {"n": 0}

        def always_limited():
            calls["n"] += 1
            raise LLMRateLimitError("429")

        retrying = rate_limit_retrying(max_retries=3, initial_backoff=5, backoff_multiplier=3, sleep=sleeps.append)
        with pytest.raises(RetryError):
            retrying(always_limited)

        assert calls["n"] == 4
        assert sleeps == [5, 15, 45]

    def test_success_after_retry(self):
        sleeps: list[float] = []
        outcomes = iter([LLMRateLimitError("429"), "ok"])

        def flaky():
            value = next(outcomes)
            if isinstance(value, Exception):
                raise value
            return value

        retrying = rate_limit_retrying(sleep=sleeps.append)
        assert retrying(flaky) == "ok"
        assert sleeps == [5]

    def test_non_rate_limit_propagates(self):
        retrying = rate_limit_retrying(sleep=lambda _: None)

        def broken():
            raise LLMServiceError("bad request")

        with pytest.raises(LLMServiceError):
            retrying(broken)
