"""Configuration diagnostics for `skilldo config-check`.

Nothing here raises on a bad setting: every finding is recorded as passed,
warning or error so the CLI can print the whole picture at once.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Mapping

from adapters.executors import is_tool_available
from core.config import VALID_PROVIDERS, LlmConfig, SkilldoConfig
from core.domain.exceptions import ConfigError

SHORT_CONTAINER_TIMEOUT = 30

_INFERRED_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "openai-compatible": "OPENAI_API_KEY",
}


@dataclass
class ConfigCheckResult:
    passed: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def ok(self, message: str) -> None:
        self.passed.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def _check_api_key(llm: LlmConfig, label: str, result: ConfigCheckResult, environ: Mapping[str, str]) -> None:
    env_var = llm.api_key_env
    inferred = ""
    if env_var and env_var.lower() == "none":
        result.ok(f"{label}: no API key needed")
        return
    if not env_var:
        env_var = _INFERRED_KEY_ENV.get(llm.provider)
        if env_var is None:
            result.ok(f"{label}: no API key configured")
            return
        inferred = " (inferred from provider)"

    value = environ.get(env_var)
    local_ok = llm.provider == "openai-compatible"
    if value is not None and value.strip():
        result.ok(f"{label}: {env_var} is set{inferred}")
    elif value is not None:
        if local_ok:
            result.warn(f"{label}: {env_var} is set but empty (OK for local models, needed for gateways)")
        else:
            result.error(f"{label}: {env_var} is set but empty{inferred}")
    elif local_ok:
        result.warn(f"{label}: {env_var} is not set (OK for local models, needed for gateways)")
    else:
        result.error(f"{label}: {env_var} is not set{inferred}")


def _check_agent_provider(agent: int, llm: LlmConfig, result: ConfigCheckResult) -> None:
    if llm.provider in VALID_PROVIDERS:
        result.ok(f"Agent {agent} LLM override: {llm.provider} ({llm.model})")
    else:
        result.error(
            f"Agent {agent} LLM override: unknown provider '{llm.provider}' "
            f"(expected: {', '.join(VALID_PROVIDERS)})"
        )


def _check_extra_body(llm: LlmConfig, label: str, result: ConfigCheckResult) -> None:
    try:
        extra = llm.resolve_extra_body()
    except ConfigError as exc:
        result.error(f"{label} extra_body_json: {exc.message}")
        return
    if extra:
        result.ok(f"{label} extra_body: {len(extra)} fields")


def check_config(
    config: SkilldoConfig,
    *,
    source: str = "default search path",
    environ: Mapping[str, str] | None = None,
    runtime_available: Callable[[str], bool] | None = None,
) -> ConfigCheckResult:
    env = os.environ if environ is None else environ
    probe = runtime_available or is_tool_available
    result = ConfigCheckResult()
    result.ok(f"Config loaded from {source}")

    llm = config.llm
    gen = config.generation

    if llm.provider in VALID_PROVIDERS:
        result.ok(f"LLM provider: {llm.provider} (model: {llm.model})")
    else:
        result.error(f"Unknown LLM provider: '{llm.provider}' (expected: {', '.join(VALID_PROVIDERS)})")
    _check_api_key(llm, "Main LLM", result, env)

    if llm.provider == "openai-compatible":
        if llm.base_url:
            result.ok("Base URL configured for openai-compatible provider")
        else:
            result.warn(
                "openai-compatible provider without base_url — will use default http://localhost:11434/v1"
            )

    result.ok(f"Generation: max_retries={gen.max_retries}, max_source_tokens={gen.max_source_tokens}")

    if gen.enable_agent5:
        result.ok(f"Agent 5 enabled (mode: {gen.agent5_mode})")
        if gen.agent5_llm is not None:
            _check_agent_provider(5, gen.agent5_llm, result)
            _check_api_key(gen.agent5_llm, "Agent 5 LLM", result, env)
    else:
        result.ok("Agent 5 disabled")

    for agent in (1, 2, 3, 4):
        override = gen.agent_llm(agent)
        if override is not None:
            _check_agent_provider(agent, override, result)
            _check_api_key(override, f"Agent {agent} LLM", result, env)

    if gen.review_llm is not None:
        if gen.review_llm.provider in VALID_PROVIDERS:
            result.ok(f"Review LLM override: {gen.review_llm.provider} ({gen.review_llm.model})")
        else:
            result.error(f"Review LLM override: unknown provider '{gen.review_llm.provider}'")
        _check_api_key(gen.review_llm, "Review LLM", result, env)

    runtime = gen.container.runtime
    if probe(runtime):
        result.ok(f"Container runtime: {runtime} (available)")
    elif gen.enable_agent5:
        result.error(f"Container runtime '{runtime}' not found — Agent 5 validation will fail")
    else:
        result.warn(f"Container runtime '{runtime}' not found (Agent 5 disabled, so this is OK)")

    _check_extra_body(llm, "Main LLM", result)
    for agent in (1, 2, 3, 4, 5):
        override = gen.agent_llm(agent)
        if override is not None:
            _check_extra_body(override, f"Agent {agent}", result)

    if gen.container.timeout < SHORT_CONTAINER_TIMEOUT:
        result.warn(
            f"Container timeout {gen.container.timeout}s is very short — "
            "consider 60s+ for libraries with dependencies"
        )
    return result
