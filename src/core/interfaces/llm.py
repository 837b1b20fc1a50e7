"""LLM client contract.

Why Protocol:
- A structural contract (duck typing) instead of rigid inheritance.
- Provider adapters (Anthropic, OpenAI, Gemini, mock) stay interchangeable
  and testable without coupling the core to any SDK.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class LlmClient(Protocol):
    """Minimal contract for a text-completion provider.

    Design rules:
    - `complete` is asynchronous because it performs network I/O.
    - Returns the raw text of the first completion; parsing is the caller's job.
    """

    async def complete(self, prompt: str) -> str:
        """Send a single-turn prompt and return the model's text."""

        ...
