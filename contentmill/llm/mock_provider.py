# contentmill/llm/mock_provider.py
"""
Deterministic mock provider for local runs without credentials.

Produces a structurally valid rewrite from the prompt itself and never flags
content as promotional.
"""

from __future__ import annotations

import html
import json
import re

from contentmill.llm.base import LLMProvider

_TITLE_LINE = re.compile(r"^TITLE:\s*(.*)$", re.MULTILINE)
_CONTENT_BLOCK = re.compile(r"^CONTENT:\s*\n?([\s\S]*?)\n\nReturn ", re.MULTILINE)


class MockLLMProvider(LLMProvider):
    """Echoes the source back as a minimal rewrite."""

    def __init__(self, category: str = "General"):
        self._category = category
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model_name(self) -> str:
        return "mock-v1"

    def complete(self, system_prompt: str, user_prompt: str, call_type: str = "rewrite") -> str:
        self.calls.append((call_type, user_prompt))

        if call_type != "rewrite":
            return json.dumps({"isSales": False, "confidence": 0.0})

        title_match = _TITLE_LINE.search(user_prompt)
        title = title_match.group(1).strip() if title_match else "Untitled"
        content_match = _CONTENT_BLOCK.search(user_prompt)
        text = re.sub(r"<[^>]+>", " ", content_match.group(1) if content_match else "")
        text = " ".join(text.split())

        paragraphs = [p for p in re.split(r"(?<=[.!?])\s+", text) if p] or [title]
        body = "".join(f"<p>{html.escape(p)}</p>" for p in paragraphs)

        return json.dumps({
            "title": title,
            "content": body,
            "excerpt": text[:200],
            "metaDescription": text[:155],
            "tags": [],
            "category": self._category,
            "socialCopy": title[:200],
            "socialHashtags": [],
        })
