# contentmill/services/resilience.py
"""
Resilience patterns for calls to the generative text service.

The service is rate-limited per API key. Rate-limit failures are the only
transient fault worth retrying; everything else (bad credentials, malformed
output, 5xx) is surfaced to the caller immediately.
"""

import logging
import time
from collections.abc import Callable

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# Substrings that identify a rate-limit failure coming from any client library
RATE_LIMIT_MARKERS = ("429", "Too Many Requests", "RESOURCE_EXHAUSTED")


# -----------------------------------------------------------------------------
# LLM-Specific Errors
# -----------------------------------------------------------------------------


class LLMRateLimitError(Exception):
    """Raised when the LLM API returns a rate limit error."""

    pass


class LLMTimeoutError(Exception):
    """Raised when an LLM API call times out."""

    pass


class LLMServiceError(Exception):
    """Raised when the LLM API fails for any other reason."""

    pass


def is_rate_limit_error(exc: BaseException) -> bool:
    """
    True if ``exc`` signals rate limiting.

    Providers raise LLMRateLimitError; anything else is recognised by the
    markers the upstream APIs put in their error text.
    """
    if isinstance(exc, LLMRateLimitError):
        return True
    message = str(exc)
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


# -----------------------------------------------------------------------------
# Retry policy
# -----------------------------------------------------------------------------


def rate_limit_retrying(
    max_retries: int = 3,
    initial_backoff: float = 5.0,
    backoff_multiplier: float = 3.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """
    Build a tenacity policy that retries only rate-limit errors.

    With the defaults a call is attempted 4 times, waiting 5s, 15s and 45s
    between attempts. When attempts run out tenacity raises RetryError
    wrapping the last failure; non rate-limit errors propagate unchanged.

    Args:
        max_retries: Retries after the initial attempt
        initial_backoff: Wait before the first retry (seconds)
        backoff_multiplier: Factor applied to the wait for each further retry
        sleep: Sleep function (injected by tests)
    """
    return Retrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=initial_backoff, exp_base=backoff_multiplier),
        retry=retry_if_exception(is_rate_limit_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
    )
