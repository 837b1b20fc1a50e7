"""Post-generation repair of SKILL.md metadata.

Models forget the frontmatter, drop fields from it, or skip the
References section. The normalizer fixes those without touching the body.
"""

from __future__ import annotations

import logging
from typing import Sequence

from core.services.linter import REQUIRED_FIELDS
from core.services.skill_document import frontmatter_span, parse_frontmatter

logger = logging.getLogger(__name__)


def build_frontmatter(
    *,
    package_name: str,
    version: str,
    ecosystem: str,
    license: str | None,
    generated_with: str | None = None,
) -> str:
    lines = [
        "---",
        f"name: {package_name}",
        f"description: {ecosystem} library",
        f"version: {version}",
        f"ecosystem: {ecosystem}",
        f"license: {license}" if license else "# license: Unknown",
    ]
    if generated_with:
        lines.append(f"generated_with: {generated_with}")
    lines.append("---")
    return "\n".join(lines) + "\n\n"


def ensure_frontmatter(
    content: str,
    *,
    package_name: str,
    version: str,
    ecosystem: str,
    license: str | None = None,
    generated_with: str | None = None,
) -> str:
    """Guarantee a complete frontmatter block at the top of the document."""

    fresh = build_frontmatter(
        package_name=package_name,
        version=version,
        ecosystem=ecosystem,
        license=license,
        generated_with=generated_with,
    )

    trimmed = content.lstrip()
    span = frontmatter_span(trimmed)
    if span is not None:
        existing = parse_frontmatter(trimmed)
        _, end = span
        if all(field in existing for field in REQUIRED_FIELDS):
            if generated_with and "generated_with" not in existing:
                block = trimmed[:end]
                closing = block.rstrip("\n").rfind("\n")
                return (
                    trimmed[: closing + 1]
                    + f"generated_with: {generated_with}\n"
                    + trimmed[closing + 1 :]
                )
            return trimmed

        logger.info("Replacing incomplete frontmatter for %s", package_name)
        return fresh + trimmed[end:].lstrip("\n")

    body = trimmed
    first, _, rest = body.partition("\n")
    if first.strip() == "# SKILL.md":
        body = rest.lstrip("\n")
    return fresh + body


def ensure_references(content: str, project_urls: Sequence[tuple[str, str]]) -> str:
    """Append a References section when URLs are known and none exists."""

    if not project_urls or "## References" in content:
        return content

    links = "\n".join(f"- [{name}]({url})" for name, url in project_urls)
    return content.rstrip("\n") + "\n\n## References\n\n" + links + "\n"


def normalize_skill_md(
    content: str,
    *,
    package_name: str,
    version: str,
    ecosystem: str,
    license: str | None = None,
    project_urls: Sequence[tuple[str, str]] = (),
    generated_with: str | None = None,
) -> str:
    normalized = ensure_frontmatter(
        content,
        package_name=package_name,
        version=version,
        ecosystem=ecosystem,
        license=license,
        generated_with=generated_with,
    )
    return ensure_references(normalized, project_urls)
