"""Configuration diagnostics and interactive LLM setup."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from cli.ui_components import build_config_check_table, print_banner
from core.config import get_user_config_file, load_config, write_user_config, write_user_env_vars
from core.domain.exceptions import ConfigError
from core.services.config_check import ConfigCheckResult, check_config

_console = Console()

# provider preset -> (provider, default model, key env var, base_url)
PRESETS: dict[str, tuple[str, str, str, str | None]] = {
    "anthropic": ("anthropic", "claude-sonnet-4-20250514", "ANTHROPIC_API_KEY", None),
    "openai": ("openai", "gpt-4o", "OPENAI_API_KEY", None),
    "gemini": ("gemini", "gemini-2.0-flash", "GEMINI_API_KEY", None),
    "ollama": ("openai-compatible", "qwen2.5-coder:14b", "none", "http://localhost:11434/v1"),
    "openrouter": ("openai-compatible", "anthropic/claude-sonnet-4", "OPENROUTER_API_KEY", "https://openrouter.ai/api/v1"),
    "groq": ("openai-compatible", "llama-3.3-70b-versatile", "GROQ_API_KEY", "https://api.groq.com/openai/v1"),
}


def config_check(
    config: Path | None = typer.Option(None, "--config", help="Path to skilldo.toml."),
) -> None:
    """Validate configuration, API keys and the container runtime."""

    try:
        loaded = load_config(config)
    except ConfigError as exc:
        result = ConfigCheckResult()
        result.error(f"Failed to load config: {exc.message}")
    else:
        result = check_config(loaded, source=str(config) if config else "default search path")

    _console.print(build_config_check_table(result))
    if result.has_errors:
        _console.print(f"[red]{len(result.errors)} config error(s) found[/red]")
        raise typer.Exit(code=1)


def setup_llm() -> None:
    """Interactive LLM setup (stores the key in the user .env and a config.toml).

    Meant for users who would rather not edit TOML by hand.
    """

    print_banner(_console)
    preset_name = typer.prompt("LLM provider preset", default="anthropic", show_default=True).strip().lower()
    preset = PRESETS.get(preset_name)
    if preset is None:
        _console.print(
            f"[yellow]Unknown preset. Known presets: {', '.join(PRESETS)}. "
            "You can still enter custom values.[/yellow]"
        )
        preset = ("openai-compatible", "", "AI_API_KEY", None)

    provider, default_model, default_env, default_url = preset
    model = typer.prompt("Model", default=default_model or None, show_default=True).strip()
    base_url: str | None = None
    if provider == "openai-compatible":
        base_url = typer.prompt("Base URL", default=default_url or "", show_default=True).strip() or None
    key_env = typer.prompt("API key environment variable", default=default_env, show_default=True).strip()

    if not model:
        raise typer.BadParameter("model is required")

    if key_env.lower() != "none":
        api_key = typer.prompt("API key", hide_input=True, confirmation_prompt=False).strip()
        if api_key:
            env_path = write_user_env_vars({key_env: api_key})
            _console.print(f"[green]Saved API key to:[/green] {env_path}")

    if get_user_config_file().exists() and not typer.confirm(
        f"{get_user_config_file()} exists. Overwrite it?", default=False
    ):
        _console.print("[yellow]Config left unchanged.[/yellow]")
        return

    config_path = write_user_config(provider=provider, model=model, api_key_env=key_env, base_url=base_url)
    _console.print(f"[green]Saved LLM config to:[/green] {config_path}")
