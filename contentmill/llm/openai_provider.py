# contentmill/llm/openai_provider.py
"""
OpenAI LLM provider implementation.
"""

from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import OpenAI

from contentmill.llm.base import LLMProvider
from contentmill.logging_config import log_llm_call
from contentmill.services.resilience import (
    LLMRateLimitError,
    LLMServiceError,
    LLMTimeoutError,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI-based LLM provider."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key. If not provided, uses OPENAI_API_KEY setting.
            model: Model to use. Defaults to OPENAI_MODEL setting.
            timeout: Per-request timeout in seconds.
            client: Pre-built client (tests).
        """
        from contentmill.config import get_settings

        settings = get_settings()
        self._model = model or settings.OPENAI_MODEL

        if client is None:
            api_key = api_key or settings.OPENAI_API_KEY
            if not api_key:
                raise ValueError(
                    "OpenAI API key required. Set OPENAI_API_KEY env var or pass api_key."
                )
            # Retries are owned by the rewriter's rate-limit policy, not the SDK
            client = OpenAI(
                api_key=api_key,
                timeout=timeout or settings.LLM_TIMEOUT_SECONDS,
                max_retries=0,
            )
        self._client = client

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        call_type: str = "rewrite",
    ) -> str:
        """Make a JSON-mode chat completion request."""
        with log_llm_call(self.name, self._model, call_type) as metrics:
            try:
                response = self._client.chat.completions.create(
                    model=self._model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    temperature=0.7 if call_type == "rewrite" else 0.0,
                    response_format={"type": "json_object"},
                )
            except openai.RateLimitError as e:
                raise LLMRateLimitError(f"429 Too Many Requests: {e}") from e
            except openai.APITimeoutError as e:
                raise LLMTimeoutError(str(e)) from e
            except openai.APIError as e:
                raise LLMServiceError(str(e)) from e

            if response.usage:
                metrics["tokens_in"] = response.usage.prompt_tokens
                metrics["tokens_out"] = response.usage.completion_tokens

        return response.choices[0].message.content or ""
