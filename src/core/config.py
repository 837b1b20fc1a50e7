"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) and the
  `skilldo.toml` file without leaking either into the CLI.
- Lets adapters (HTTP/LLM/containers) read config consistently.

Two layers:
- `AppSettings`: process-level knobs from env / `.env` (`SKILLDO_*`).
- `SkilldoConfig`: the TOML file (providers, generation, prompts).
"""

from __future__ import annotations

import json
import logging
import os
import sys
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.exceptions import ConfigError, MissingApiKeyError
from core.domain.models import ValidationMode

logger = logging.getLogger(__name__)

VALID_PROVIDERS: tuple[str, ...] = ("anthropic", "openai", "gemini", "openai-compatible")

_DEFAULT_MAX_TOKENS: dict[str, int] = {
    "anthropic": 4096,
    "openai": 4096,
    "openai-compatible": 16384,
    "gemini": 8192,
}


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no extra dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "skilldo"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "skilldo"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "skilldo"
    return Path.home() / ".config" / "skilldo"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def get_user_config_file() -> Path:
    return get_user_config_dir() / "config.toml"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def load_env_files(paths: tuple[Path, ...] | None = None) -> list[str]:
    """Export `.env` entries (project, then user) into `os.environ`.

    Provider keys are looked up by name (`api_key_env`), so they have to be
    real environment variables. Variables already set are never overridden.
    Returns the names that were exported.
    """

    exported: list[str] = []
    for path in paths or (Path(".env"), get_user_env_file()):
        if not path.is_file():
            continue
        try:
            values = _parse_env_lines(path.read_text(encoding="utf-8"))
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            continue
        for key, value in values.items():
            if key not in os.environ:
                os.environ[key] = value
                exported.append(key)
    return exported


def write_user_config(
    *,
    provider: str,
    model: str,
    api_key_env: str,
    base_url: str | None = None,
) -> Path:
    """Write a minimal `[llm]` table to the user config.toml."""

    config_path = get_user_config_file()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        "# skilldo user config",
        "[llm]",
        f"provider = {json.dumps(provider)}",
        f"model = {json.dumps(model)}",
        f"api_key_env = {json.dumps(api_key_env)}",
    ]
    if base_url:
        lines.append(f"base_url = {json.dumps(base_url)}")
    config_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return config_path


def write_user_env_vars(values: dict[str, str]) -> Path:
    """Write/update variables in the user's global .env file."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# skilldo user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Process-level settings.

    Why pydantic-settings:
    - Typed, validated environment at the edge without polluting services.
    - A single contract for the CLI and the adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="SKILLDO_",
        extra="ignore",
        case_sensitive=False,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    log_level: str = Field(default="INFO", description="Root log level for the CLI.")
    config_path: Path | None = Field(
        default=None,
        description="skilldo.toml to load when --config is not given.",
    )
    http_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Timeout per provider request (seconds).",
    )
    user_agent: str = Field(
        default="skilldo/0.1 (+https://github.com)",
        min_length=1,
        description="User-Agent sent to LLM providers.",
    )
    llm_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries on transient provider failures (rate limit, network).",
    )


class LlmConfig(BaseModel):
    """`[llm]` table (also used for per-agent overrides)."""

    model_config = ConfigDict(extra="ignore")

    provider: str = Field(default="anthropic", description="anthropic, openai, gemini, openai-compatible.")
    model: str = Field(default="claude-sonnet-4-20250514", min_length=1)
    api_key_env: str | None = Field(
        default="AI_API_KEY",
        description="Environment variable holding the API key ('none' for keyless endpoints).",
    )
    base_url: str | None = Field(default=None, description="Override for OpenAI-compatible APIs.")
    max_tokens: int | None = Field(default=None, gt=0)
    extra_body: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra fields merged into every request body.",
    )
    extra_body_json: str | None = Field(
        default=None,
        description="Same as extra_body, as a JSON object string.",
    )

    def get_max_tokens(self) -> int:
        if self.max_tokens is not None:
            return self.max_tokens
        return _DEFAULT_MAX_TOKENS.get(self.provider, 4096)

    def resolve_extra_body(self) -> dict[str, Any]:
        merged = dict(self.extra_body)
        if self.extra_body_json:
            try:
                parsed = json.loads(self.extra_body_json)
            except json.JSONDecodeError as exc:
                raise ConfigError("extra_body_json", str(exc)) from exc
            if not isinstance(parsed, dict):
                raise ConfigError("extra_body_json", "must be a JSON object")
            merged.update(parsed)
        return merged

    def get_api_key(self) -> SecretStr:
        env_var = self.api_key_env
        if not env_var or env_var.lower() == "none":
            return SecretStr("")
        value = os.environ.get(env_var)
        if value is None:
            # Local OpenAI-compatible servers (Ollama, vLLM) need no key.
            if self.provider == "openai-compatible":
                return SecretStr("")
            raise MissingApiKeyError(env_var)
        return SecretStr(value)


class ContainerConfig(BaseModel):
    """`[generation.container]` table."""

    model_config = ConfigDict(extra="ignore")

    runtime: str = "docker"
    python_image: str = "ghcr.io/astral-sh/uv:python3.11-bookworm-slim"
    javascript_image: str = "node:20-slim"
    rust_image: str = "rust:1.75-slim"
    go_image: str = "golang:1.21-alpine"
    cleanup: bool = True
    timeout: int = Field(default=60, gt=0, description="Seconds per test script.")
    install_source: str = Field(
        default="registry",
        pattern="^(registry|local-install|local-mount)$",
        description="Where the package under test comes from.",
    )
    source_path: str | None = None
    extra_env: dict[str, str] = Field(default_factory=dict)

    def image_for(self, language: str) -> str:
        return {
            "python": self.python_image,
            "javascript": self.javascript_image,
            "rust": self.rust_image,
            "go": self.go_image,
        }.get(language, self.python_image)


class GenerationConfig(BaseModel):
    """`[generation]` table."""

    model_config = ConfigDict(extra="ignore")

    max_retries: int = Field(default=5, ge=0)
    max_source_tokens: int = Field(default=100_000, gt=0)
    parallel_extraction: bool = True
    enable_agent5: bool = True
    agent5_mode: str = "thorough"
    enable_review: bool = False
    agent1_llm: LlmConfig | None = None
    agent2_llm: LlmConfig | None = None
    agent3_llm: LlmConfig | None = None
    agent4_llm: LlmConfig | None = None
    agent5_llm: LlmConfig | None = None
    review_llm: LlmConfig | None = None
    container: ContainerConfig = Field(default_factory=ContainerConfig)

    def get_agent5_mode(self) -> ValidationMode:
        return ValidationMode.from_config(self.agent5_mode)

    def agent_llm(self, agent: int) -> LlmConfig | None:
        return {
            1: self.agent1_llm,
            2: self.agent2_llm,
            3: self.agent3_llm,
            4: self.agent4_llm,
            5: self.agent5_llm,
        }.get(agent)


class PromptsConfig(BaseModel):
    """`[prompts]` table: per-agent custom instructions."""

    model_config = ConfigDict(extra="ignore")

    override_prompts: bool = False
    agent1_mode: str | None = None
    agent2_mode: str | None = None
    agent3_mode: str | None = None
    agent4_mode: str | None = None
    agent1_custom: str | None = None
    agent2_custom: str | None = None
    agent3_custom: str | None = None
    agent4_custom: str | None = None
    agent5_custom: str | None = None
    review_custom: str | None = None

    def custom_for(self, agent: int) -> str | None:
        return getattr(self, f"agent{agent}_custom", None)

    def is_overwrite(self, agent: int) -> bool:
        """Whether agent `agent` replaces its template with the custom prompt.

        Agent 5 always appends; an explicit per-agent mode wins over the
        global `override_prompts` flag.
        """

        if agent not in (1, 2, 3, 4):
            return False
        mode = getattr(self, f"agent{agent}_mode")
        if mode is None:
            return self.override_prompts
        return mode == "overwrite"


class SkilldoConfig(BaseModel):
    """Contents of `skilldo.toml`."""

    model_config = ConfigDict(extra="ignore")

    llm: LlmConfig = Field(default_factory=LlmConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)

    def get_api_key(self) -> SecretStr:
        return self.llm.get_api_key()

    def model_label(self) -> str:
        """Value for the `generated_with` frontmatter field."""

        if self.generation.agent5_llm is not None:
            return f"{self.llm.model} + {self.generation.agent5_llm.model} (agent5)"
        return self.llm.model


def _load_from_path(path: Path) -> SkilldoConfig:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(str(path), str(exc)) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(str(path), f"TOML parse error: {exc}") from exc
    try:
        return SkilldoConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(path), str(exc)) from exc


def load_config(path: str | Path | None = None) -> SkilldoConfig:
    """Load configuration.

    Order: explicit path (errors propagate) -> ./skilldo.toml -> user config
    dir -> built-in defaults.
    """

    if path is not None:
        logger.debug("Loading config from explicit path: %s", path)
        return _load_from_path(Path(path))

    for candidate in (Path("skilldo.toml"), get_user_config_file()):
        if not candidate.is_file():
            continue
        try:
            config = _load_from_path(candidate)
        except ConfigError as exc:
            logger.warning("Ignoring unreadable config %s: %s", candidate, exc.message)
            continue
        logger.debug("Loaded config from %s", candidate)
        return config

    logger.debug("Using default config")
    return SkilldoConfig()
