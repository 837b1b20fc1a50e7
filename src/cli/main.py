"""skilldo command line interface.

Why Typer + Rich:
- Typer gives typed options and help text from the signatures.
- Rich renders the reports and carries the log output (RichHandler).

Every command converts `DomainError` into a red message and exit code 1;
anything else is a bug and keeps its traceback.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler

from adapters.executors import ContainerExecutor
from adapters.json_exporter import export_lint_json
from adapters.llm_clients import create_client, create_client_from_llm_config
from cli import doctor
from cli.ui_components import build_changelog_panel, build_lint_report, build_review_table
from core.config import AppSettings, SkilldoConfig, load_config, load_env_files
from core.domain.exceptions import DomainError, SkillFileError
from core.domain.models import LintIssue
from core.services.changelog import ChangelogAnalyzer
from core.services.collector import Collector
from core.services.detector import resolve_language
from core.services.generator import AgentClients, Generator
from core.services.linter import SkillLinter, has_errors, summarize
from core.services.reviewer import ReviewAgent
from core.services.skill_document import frontmatter_value
from core.services.versioning import extract_version

logger = logging.getLogger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Generate agent rules files (SKILL.md) for open source libraries.",
)
app.command(name="config-check")(doctor.config_check)
app.command(name="setup-llm")(doctor.setup_llm)

_console = Console()
_err_console = Console(stderr=True)


def _configure_logging(level: str) -> None:
    handler = RichHandler(console=_err_console, show_path=False, markup=False)
    logging.basicConfig(level=level.upper(), format="%(message)s", datefmt="[%X]", handlers=[handler], force=True)
    # Provider SDKs log every request at INFO.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _fail(exc: DomainError) -> NoReturn:
    _err_console.print(f"[red]Error:[/red] {exc.message}", markup=True, highlight=False)
    raise typer.Exit(code=1)


def _settings(ctx: typer.Context) -> AppSettings:
    if isinstance(ctx.obj, AppSettings):
        return ctx.obj
    return AppSettings()


def _read_skill_file(path: Path) -> str:
    if not path.exists():
        raise SkillFileError(str(path), "File not found")
    if not path.is_file():
        raise SkillFileError(str(path), "Path is not a file")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SkillFileError(str(path), f"Cannot read file ({exc})") from exc


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    load_env_files()
    settings = AppSettings()
    _configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


def build_agent_clients(config: SkilldoConfig, *, dry_run: bool, settings: AppSettings) -> AgentClients:
    """Main client plus one client per configured `agentN_llm` / `review_llm` override."""

    clients = AgentClients(default=create_client(config, dry_run=dry_run, settings=settings))
    for agent in (1, 2, 3, 4, 5):
        override = config.generation.agent_llm(agent)
        if override is not None:
            logger.info("Using %s (%s) for agent %d", override.provider, override.model, agent)
            clients.overrides[agent] = create_client_from_llm_config(override, dry_run=dry_run, settings=settings)
    if config.generation.review_llm is not None:
        clients.review = create_client_from_llm_config(
            config.generation.review_llm, dry_run=dry_run, settings=settings
        )
    return clients


async def _generate(
    *,
    path: Path,
    language: str | None,
    input_path: Path | None,
    output: Path,
    version: str | None,
    version_from: str | None,
    config_path: Path | None,
    dry_run: bool,
    settings: AppSettings,
) -> str:
    lang = resolve_language(path, language)
    logger.info("Repository: %s (%s)", path, lang.as_str())
    config = load_config(config_path or settings.config_path)

    collector = Collector(path, lang, max_source_chars=config.generation.max_source_tokens)
    data = await collector.collect()
    data.version = extract_version(path, version, version_from, fallback=data.version)
    logger.info("Collected data for package: %s v%s", data.package_name, data.version)

    clients = build_agent_clients(config, dry_run=dry_run, settings=settings)
    logger.info("Using %s", "mock LLM client" if dry_run else f"{config.llm.provider} LLM provider")

    existing: str | None = None
    if input_path is not None:
        logger.info("Update mode: reading existing SKILL.md from %s", input_path)
        existing = _read_skill_file(input_path)
    elif output.exists():
        logger.info("Existing SKILL.md found at %s, updating in place", output)
        existing = _read_skill_file(output)

    generator = Generator(
        clients=clients,
        config=config,
        existing_skill=existing,
        model_name=config.model_label(),
    )
    return await generator.generate(data)


@app.command()
def generate(
    ctx: typer.Context,
    path: Path = typer.Argument(Path("."), help="Repository path."),
    language: str | None = typer.Option(None, "--language", help="python, javascript, rust, go (auto-detected)."),
    input_path: Path | None = typer.Option(None, "--input", "-i", help="Existing SKILL.md to update."),
    output: Path = typer.Option(Path("SKILL.md"), "--output", "-o", help="Output file path."),
    version: str | None = typer.Option(None, "--version", help="Explicit version override."),
    version_from: str | None = typer.Option(
        None, "--version-from", help="Version strategy: git-tag, package, branch, commit."
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to skilldo.toml."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use the offline mock LLM client."),
) -> None:
    """Generate (or update) the SKILL.md for a repository."""

    try:
        skill_md = asyncio.run(
            _generate(
                path=path,
                language=language,
                input_path=input_path,
                output=output,
                version=version,
                version_from=version_from,
                config_path=config,
                dry_run=dry_run,
                settings=_settings(ctx),
            )
        )
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(skill_md, encoding="utf-8")
    except DomainError as exc:
        _fail(exc)
    except OSError as exc:
        _fail(SkillFileError(str(output), f"Cannot write file ({exc})"))

    _console.print(f"[green]Generated SKILL.md written to[/green] {output}")
    _console.print(build_lint_report(SkillLinter().lint(skill_md)))


@app.command()
def lint(
    file: Path = typer.Argument(..., help="SKILL.md to check."),
    json_output: Path | None = typer.Option(None, "--json-output", help="Also write the report as JSON."),
) -> None:
    """Lint a SKILL.md; exits with 1 when errors are found."""

    try:
        content = _read_skill_file(file)
    except DomainError as exc:
        _fail(exc)

    issues: list[LintIssue] = SkillLinter().lint(content)
    _console.print(build_lint_report(issues))
    if json_output is not None:
        export_lint_json(issues=issues, source=str(file), output_path=json_output)
        _console.print(f"[green]JSON report:[/green] {json_output}")

    if has_errors(issues):
        errors, _, _ = summarize(issues)
        _err_console.print(f"[red]{errors} lint error(s) found[/red]")
        raise typer.Exit(code=1)


@app.command()
def review(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="SKILL.md to review."),
    config: Path | None = typer.Option(None, "--config", help="Path to skilldo.toml."),
    model: str | None = typer.Option(None, "--model", help="Override the review model."),
    provider: str | None = typer.Option(None, "--provider", help="Override the review provider."),
    base_url: str | None = typer.Option(None, "--base-url", help="Override the provider base URL."),
    runtime: str | None = typer.Option(None, "--runtime", help="Container runtime (docker, podman)."),
    timeout: int | None = typer.Option(None, "--timeout", min=1, help="Container timeout in seconds."),
    no_container: bool = typer.Option(False, "--no-container", help="Skip the introspection container."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use the offline mock LLM client."),
) -> None:
    """Check a SKILL.md for accuracy and safety; exits with 1 when it fails."""

    settings = _settings(ctx)
    try:
        skill_md = _read_skill_file(file)
        cfg = load_config(config or settings.config_path)

        llm_config = cfg.generation.review_llm or cfg.llm
        updates = {k: v for k, v in (("provider", provider), ("model", model), ("base_url", base_url)) if v}
        llm_config = llm_config.model_copy(update=updates)

        container = cfg.generation.container
        container_updates = {k: v for k, v in (("runtime", runtime), ("timeout", timeout)) if v}
        container = container.model_copy(update=container_updates)

        client = create_client_from_llm_config(llm_config, dry_run=dry_run, settings=settings)
        package_name = frontmatter_value(skill_md, "name") or "unknown"
        language = frontmatter_value(skill_md, "ecosystem") or frontmatter_value(skill_md, "language") or "python"
        logger.info("Reviewing %s (package: %s, language: %s)", file, package_name, language)

        agent = ReviewAgent(
            llm=client,
            executor=None if no_container else ContainerExecutor(container, language="python"),
            custom_prompt=cfg.prompts.review_custom,
            strict=True,
        )
        result = asyncio.run(agent.review(skill_md, package_name=package_name, language=language))
    except DomainError as exc:
        _fail(exc)

    if result.issues:
        _console.print(build_review_table(result))
    if result.passed:
        suffix = f" with {len(result.issues)} warning(s)" if result.issues else ": no issues found"
        _console.print(f"[green]PASSED[/green]{suffix}")
        return

    _err_console.print(f"[red]FAILED: {len(result.issues)} review issue(s) found[/red]")
    raise typer.Exit(code=1)


@app.command()
def changelog(
    file: Path = typer.Argument(..., help="Changelog file."),
    from_version: str = typer.Option(..., "--from", help="Version the SKILL.md documents."),
    to_version: str = typer.Option(..., "--to", help="New release."),
) -> None:
    """Tell whether a release warrants regenerating the SKILL.md."""

    try:
        content = _read_skill_file(file)
    except DomainError as exc:
        _fail(exc)

    analysis = ChangelogAnalyzer(content).analyze_between_versions(from_version, to_version)
    _console.print(build_changelog_panel(analysis, old=from_version, new=to_version))


def run() -> None:
    app()
