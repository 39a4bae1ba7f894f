# contentmill/llm/__init__.py
"""
LLM provider abstraction layer.

Usage:
    from contentmill.llm import get_llm_provider

    provider = get_llm_provider()  # Uses LLM_PROVIDER setting
    text = provider.complete(system_prompt, user_prompt)

Construct the provider once at process start and pass it into the services
that need it.
"""

from __future__ import annotations

from typing import Optional

from contentmill.llm.base import LLMProvider, extract_json

__all__ = [
    "LLMProvider",
    "extract_json",
    "get_llm_provider",
]


def get_llm_provider(
    provider_name: Optional[str] = None,
    **kwargs,
) -> LLMProvider:
    """
    Factory function to get an LLM provider instance.

    Args:
        provider_name: 'openai' or 'mock'. Defaults to the LLM_PROVIDER setting.
        **kwargs: Additional arguments passed to the provider constructor

    Example:
        provider = get_llm_provider()
        provider = get_llm_provider("openai", model="gpt-4o")
    """
    if provider_name is None:
        from contentmill.config import get_settings

        provider_name = get_settings().LLM_PROVIDER
    name = provider_name.lower().strip()

    if name == "openai":
        from contentmill.llm.openai_provider import OpenAIProvider

        return OpenAIProvider(**kwargs)

    if name == "mock":
        from contentmill.llm.mock_provider import MockLLMProvider

        return MockLLMProvider(**kwargs)

    raise ValueError(f"Unknown LLM provider: {name}. Available: openai, mock")
