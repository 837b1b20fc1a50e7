"""Prompt rendering.

Why templates live in adapters:
- Prompt wording is infrastructure (Jinja2 files), not pipeline logic.
- The generator and reviewer only pass data in and get text back.

Custom instructions from `[prompts]` are appended to a rendered template;
in overwrite mode the custom prompt replaces agents 1-4's template.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from core.domain.models import CodePattern

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_LARGE_LIBRARY_HINT = (
    "\n\n**LARGE LIBRARY ALERT** (2000+ files)\n"
    "This is a massive codebase. Focus on:\n"
    "1. Main entry points: top-level `__init__.py` files\n"
    "2. The most commonly used APIs: those the examples call\n"
    "3. Public interfaces only; skip implementation details\n"
    "4. `__all__` exports, which mark the public API explicitly\n"
)
_BIG_LIBRARY_HINT = (
    "\n\n**LARGE LIBRARY** (1000+ files)\n"
    "Focus on top-level public APIs and main entry points. Skip internal modules.\n"
)


def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        undefined=StrictUndefined,
        autoescape=False,
    )


def _render(name: str, **context: object) -> str:
    return _get_env().get_template(name).render(**context)


def _with_custom(prompt: str, custom: str | None, *, heading: str = "## Additional Instructions") -> str:
    if not custom:
        return prompt
    return f"{prompt}\n\n{heading}\n\n{custom}\n"


def scale_hint(source_file_count: int) -> str:
    if source_file_count > 2000:
        return _LARGE_LIBRARY_HINT
    if source_file_count > 1000:
        return _BIG_LIBRARY_HINT
    return ""


def extract_prompt(
    *,
    package_name: str,
    version: str,
    source_code: str,
    source_file_count: int,
    language: str,
    ecosystem_term: str,
    custom: str | None = None,
    overwrite: bool = False,
) -> str:
    """Agent 1: public API surface."""

    if overwrite and custom:
        return custom
    prompt = _render(
        "extract.md.j2",
        package_name=package_name,
        version=version,
        source_code=source_code,
        source_file_count=source_file_count,
        scale_hint=scale_hint(source_file_count),
        language=language,
        ecosystem_term=ecosystem_term,
    )
    return _with_custom(prompt, custom)


def map_prompt(
    *,
    package_name: str,
    version: str,
    test_code: str,
    language: str,
    ecosystem_term: str,
    custom: str | None = None,
    overwrite: bool = False,
) -> str:
    """Agent 2: usage patterns from tests and examples."""

    if overwrite and custom:
        return custom
    prompt = _render(
        "map.md.j2",
        package_name=package_name,
        version=version,
        test_code=test_code,
        language=language,
        ecosystem_term=ecosystem_term,
    )
    return _with_custom(prompt, custom)


def learn_prompt(
    *,
    package_name: str,
    version: str,
    docs_and_changelog: str,
    language: str,
    ecosystem_term: str,
    custom: str | None = None,
    overwrite: bool = False,
) -> str:
    """Agent 3: conventions, pitfalls and migration notes."""

    if overwrite and custom:
        return custom
    prompt = _render(
        "learn.md.j2",
        package_name=package_name,
        version=version,
        docs_and_changelog=docs_and_changelog,
        language=language,
        ecosystem_term=ecosystem_term,
    )
    return _with_custom(prompt, custom)


def create_prompt(
    *,
    package_name: str,
    version: str,
    license: str | None,
    project_urls: Sequence[tuple[str, str]],
    ecosystem: str,
    ecosystem_term: str,
    api_surface: str,
    patterns: str,
    context: str,
    custom: str | None = None,
    overwrite: bool = False,
) -> str:
    """Agent 4: synthesize a SKILL.md from the three extractions."""

    if overwrite and custom:
        return custom
    prompt = _render(
        "create.md.j2",
        package_name=package_name,
        version=version,
        license=license or "MIT",
        project_urls=list(project_urls),
        ecosystem=ecosystem,
        ecosystem_term=ecosystem_term,
        api_surface=api_surface,
        patterns=patterns,
        context=context,
    )
    if custom:
        prompt += f"\n## CUSTOM INSTRUCTIONS FOR THIS REPO\n\n{custom}\n"
    return prompt


def update_prompt(
    *,
    package_name: str,
    version: str,
    existing_skill: str,
    api_surface: str,
    patterns: str,
    context: str,
) -> str:
    """Agent 4 in update mode: patch an existing SKILL.md."""

    return _render(
        "update.md.j2",
        package_name=package_name,
        version=version,
        existing_skill=existing_skill,
        api_surface=api_surface,
        patterns=patterns,
        context=context,
    )


def fix_prompt(skill_md: str, errors: str) -> str:
    return (
        f"Here is the current SKILL.md:\n\n{skill_md}\n\n"
        f"FORMAT VALIDATION FAILED:\n{errors}\n\n"
        "Please fix these format issues. Keep all content intact."
    )


def patch_prompt(skill_md: str, feedback: str) -> str:
    return f"Here is the current SKILL.md:\n\n{skill_md}\n\n{feedback}"


def validation_script_prompt(
    pattern: CodePattern,
    *,
    custom: str | None = None,
    local_package: str | None = None,
) -> str:
    """Agent 5: a PEP 723 script exercising one Core Pattern."""

    prompt = _render("validation_script.md.j2", pattern=pattern, local_package=local_package)
    return _with_custom(prompt, custom)


def review_introspect_prompt(
    *,
    skill_md: str,
    package_name: str,
    version: str,
    custom: str | None = None,
) -> str:
    return _render(
        "review_introspect.md.j2",
        skill_md=skill_md,
        package_name=package_name,
        version=version,
        custom=custom,
    )


def review_verdict_prompt(
    *,
    skill_md: str,
    introspection_output: str,
    custom: str | None = None,
    now: datetime | None = None,
) -> str:
    moment = now or datetime.now(timezone.utc)
    return _render(
        "review_verdict.md.j2",
        skill_md=skill_md,
        introspection_output=introspection_output,
        utc_now=moment.isoformat(timespec="seconds"),
        custom=custom,
    )
