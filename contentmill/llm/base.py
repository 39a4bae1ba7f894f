# contentmill/llm/base.py
"""
Base interface for generative text providers.

A provider is a thin transport: it sends a system instruction and a user
prompt and returns the raw completion text. Prompt construction, parsing and
retry policy belong to the callers (rewriter, content filter).
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*([\s\S]*?)\s*```\s*$")


def extract_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from a completion, tolerating a markdown code fence.

    Raises:
        ValueError: text is empty, not JSON, or not a JSON object
    """
    if not text or not text.strip():
        raise ValueError("Empty response")

    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not parse JSON from response: {text[:200]}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider name (e.g., 'openai', 'mock')."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model being used (e.g., 'gpt-4o-mini')."""
        pass

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        call_type: str = "rewrite",
    ) -> str:
        """
        Run one completion and return the raw response text.

        Args:
            system_prompt: System instruction
            user_prompt: User message
            call_type: Label for instrumentation ("rewrite", "sales_filter")

        Raises:
            LLMRateLimitError: the service signalled rate limiting
            LLMTimeoutError: the call exceeded its timeout
            LLMServiceError: any other service failure
        """
        pass
