"""LLM provider adapters.

Responsibility:
- Send one single-turn prompt to Anthropic, OpenAI (or any OpenAI-compatible
  server) or Gemini and return the text of the first completion.
- Retry transient failures (429, 5xx, timeouts, connection errors) with
  exponential backoff, honoring `Retry-After` when the provider sends it.
- Pick the right client from `skilldo.toml` (`create_client*`).

Anthropic and Gemini are spoken to over plain httpx; OpenAI goes through the
official SDK, which also covers local OpenAI-compatible servers (Ollama,
vLLM, LM Studio) through `base_url`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, RateLimitError

from adapters.http_client import build_async_client
from adapters.mock_client import MockLlmClient
from core.config import AppSettings, LlmConfig, SkilldoConfig
from core.domain.exceptions import LlmError, UnknownProviderError
from core.interfaces.llm import LlmClient

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_COMPATIBLE_DEFAULT_URL = "http://localhost:11434/v1"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504, 529})


def _safe_retry_after_seconds(exc: Exception) -> float | None:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after") or headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _backoff_seconds(attempt: int, exc: Exception) -> float:
    retry_after = _safe_retry_after_seconds(exc)
    base = retry_after if retry_after is not None else (1.25 * (2**attempt))
    return base + random.uniform(0.0, 0.35)


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


async def _with_retries(
    provider: str,
    call: Callable[[], Awaitable[str]],
    *,
    max_retries: int,
    retryable: tuple[type[Exception], ...],
) -> str:
    """Run `call` until it succeeds or `max_retries` transient failures happened."""

    last_error: Exception | None = None
    for attempt in range(max(1, max_retries + 1)):
        try:
            return await call()
        except retryable as exc:
            last_error = exc
            if attempt >= max_retries:
                break
            delay = _backoff_seconds(attempt, exc)
            logger.warning("%s: transient failure (%s), retrying in %.1fs", provider, exc, delay)
            await asyncio.sleep(delay)

    detail = str(last_error) if last_error else "unknown error"
    if isinstance(last_error, _RetryableStatus):
        detail = f"API error {last_error.response.status_code}: {last_error.response.text[:500]}"
    raise LlmError(provider, f"giving up after {max_retries + 1} attempt(s): {detail}")


def _check_response(provider: str, response: httpx.Response) -> dict[str, Any]:
    if response.status_code in _RETRYABLE_STATUS:
        raise _RetryableStatus(response)
    if response.is_error:
        raise LlmError(provider, f"API error {response.status_code}: {response.text[:500]}")
    try:
        payload = response.json()
    except ValueError as exc:
        raise LlmError(provider, f"Failed to parse API response: {exc}") from exc
    if not isinstance(payload, dict):
        raise LlmError(provider, "Unexpected API response shape")
    return payload


_HTTPX_RETRYABLE: tuple[type[Exception], ...] = (_RetryableStatus, httpx.TimeoutException, httpx.TransportError)


class AnthropicClient:
    provider = "anthropic"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_tokens: int,
        settings: AppSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._settings = settings or AppSettings()
        self._transport = transport

    async def complete(self, prompt: str) -> str:
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

        async def call() -> str:
            logger.debug("Calling Anthropic API with model: %s", self.model)
            async with build_async_client(self._settings, transport=self._transport) as http:
                response = await http.post(ANTHROPIC_URL, json=body, headers=headers)
            payload = _check_response(self.provider, response)
            for block in payload.get("content") or []:
                if isinstance(block, dict) and isinstance(block.get("text"), str):
                    return block["text"]
            raise LlmError(self.provider, "No content in Anthropic response")

        return await _with_retries(
            self.provider, call, max_retries=self._settings.llm_max_retries, retryable=_HTTPX_RETRYABLE
        )


class GeminiClient:
    provider = "gemini"

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_tokens: int,
        settings: AppSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._settings = settings or AppSettings()
        self._transport = transport

    async def complete(self, prompt: str) -> str:
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": self.max_tokens},
        }
        url = GEMINI_URL.format(model=self.model)

        async def call() -> str:
            logger.debug("Calling Gemini API with model: %s", self.model)
            async with build_async_client(self._settings, transport=self._transport) as http:
                response = await http.post(url, json=body, params={"key": self._api_key})
            payload = _check_response(self.provider, response)
            try:
                return payload["candidates"][0]["content"]["parts"][0]["text"]
            except (KeyError, IndexError, TypeError):
                raise LlmError(self.provider, "No content in Gemini response") from None

        return await _with_retries(
            self.provider, call, max_retries=self._settings.llm_max_retries, retryable=_HTTPX_RETRYABLE
        )


class OpenAIClient:
    """Chat Completions through the official SDK (OpenAI and compatible servers)."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_tokens: int,
        base_url: str = OPENAI_BASE_URL,
        extra_body: dict[str, Any] | None = None,
        provider: str = "openai",
        settings: AppSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = base_url.rstrip("/")
        self.extra_body = dict(extra_body or {})
        self.provider = provider
        self._settings = settings or AppSettings()
        self._transport = transport

    def _token_kwargs(self) -> dict[str, int]:
        # gpt-5 family rejects max_tokens.
        if self.model.startswith("gpt-5"):
            return {"max_completion_tokens": self.max_tokens}
        return {"max_tokens": self.max_tokens}

    def _build_sdk_client(self) -> AsyncOpenAI:
        # Keyless local servers still need a non-empty key for the SDK.
        api_key = self._api_key if self._api_key and self._api_key.lower() != "none" else "local"
        http_client = (
            build_async_client(self._settings, transport=self._transport) if self._transport is not None else None
        )
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self._settings.http_timeout_seconds,
            max_retries=0,
            http_client=http_client,
        )

    async def complete(self, prompt: str) -> str:
        async def call() -> str:
            logger.debug("Calling OpenAI-compatible API at %s with model: %s", self.base_url, self.model)
            async with self._build_sdk_client() as client:
                try:
                    response = await client.chat.completions.create(
                        model=self.model,
                        messages=[{"role": "user", "content": prompt}],
                        temperature=0.7,
                        extra_body=self.extra_body or None,
                        **self._token_kwargs(),
                    )
                except APIStatusError as exc:
                    if exc.status_code in _RETRYABLE_STATUS:
                        raise
                    raise LlmError(self.provider, f"API error {exc.status_code}: {exc.message}") from exc
            if not response.choices:
                raise LlmError(self.provider, "No choices in OpenAI response")
            return response.choices[0].message.content or ""

        return await _with_retries(
            self.provider,
            call,
            max_retries=self._settings.llm_max_retries,
            retryable=(RateLimitError, APITimeoutError, APIConnectionError, APIStatusError),
        )


def create_client_from_llm_config(
    llm: LlmConfig,
    *,
    dry_run: bool = False,
    settings: AppSettings | None = None,
) -> LlmClient:
    """Client for one `[llm]`-shaped table (main config or per-agent override)."""

    if dry_run:
        return MockLlmClient()

    provider = llm.provider
    if provider not in ("anthropic", "openai", "openai-compatible", "gemini"):
        raise UnknownProviderError(provider)

    api_key = llm.get_api_key().get_secret_value()
    max_tokens = llm.get_max_tokens()
    logger.debug("Creating %s client for model %s", provider, llm.model)

    if provider == "anthropic":
        return AnthropicClient(api_key=api_key, model=llm.model, max_tokens=max_tokens, settings=settings)
    if provider == "gemini":
        return GeminiClient(api_key=api_key, model=llm.model, max_tokens=max_tokens, settings=settings)

    base_url = llm.base_url or (OPENAI_COMPATIBLE_DEFAULT_URL if provider == "openai-compatible" else OPENAI_BASE_URL)
    return OpenAIClient(
        api_key=api_key,
        model=llm.model,
        max_tokens=max_tokens,
        base_url=base_url,
        extra_body=llm.resolve_extra_body(),
        provider=provider,
        settings=settings,
    )


def create_client(
    config: SkilldoConfig,
    *,
    dry_run: bool = False,
    settings: AppSettings | None = None,
) -> LlmClient:
    return create_client_from_llm_config(config.llm, dry_run=dry_run, settings=settings)
