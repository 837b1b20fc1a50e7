"""Read the testable parts of a SKILL.md.

The code validator needs three things from a generated document: the Core
Patterns (name, prose, first python block), the third-party packages the
Imports section relies on, and the frontmatter name/version.
"""

from __future__ import annotations

import logging
import re
import sys

from core.domain.models import CodePattern, PatternCategory

logger = logging.getLogger(__name__)

_CORE_PATTERNS_RE = re.compile(r"^##\s+Core\s+Patterns\s*$", re.MULTILINE)
_IMPORTS_RE = re.compile(r"^##\s+Imports\s*$", re.MULTILINE)
_NEXT_SECTION_RE = re.compile(r"^##\s+", re.MULTILINE)
_PATTERN_HEADING_RE = re.compile(r"^###\s+(.+?)$", re.MULTILINE)
_PYTHON_BLOCK_RE = re.compile(r"```python\n(.*?)```", re.DOTALL)
_IMPORT_RE = re.compile(r"^import\s+([A-Za-z0-9_]+)", re.MULTILINE)
_FROM_IMPORT_RE = re.compile(r"^from\s+([A-Za-z0-9_]+)", re.MULTILINE)
_PIP_INSTALL_RE = re.compile(r"pip\s+install\s+([A-Za-z0-9_-]+)")

LOCAL_MODULE_NAMES: frozenset[str] = frozenset(
    {
        "cli", "main", "app", "config", "utils", "helpers", "models", "views", "routes",
        "handlers", "tests", "test", "example", "src", "lib", "core", "api", "client", "server",
    }
)
_SHORT_PACKAGES: frozenset[str] = frozenset({"jwt", "aws", "grpc", "PIL"})

_CATEGORY_KEYWORDS: tuple[tuple[PatternCategory, tuple[str, ...]], ...] = (
    (PatternCategory.BASIC_USAGE, ("basic", "simple", "hello", "getting started", "quickstart")),
    (PatternCategory.CONFIGURATION, ("config", "setup", "initialize")),
    (PatternCategory.ERROR_HANDLING, ("error", "exception", "try", "catch", "handle")),
    (PatternCategory.ASYNC_PATTERN, ("async", "await", "concurrent")),
)


def categorize_pattern(name: str, description: str) -> PatternCategory:
    text = f"{name} {description}".lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return PatternCategory.OTHER


def is_stdlib_module(name: str) -> bool:
    return name in sys.stdlib_module_names


def is_likely_local_module(name: str) -> bool:
    if len(name) <= 3 and name not in _SHORT_PACKAGES:
        return True
    return name in LOCAL_MODULE_NAMES


def _section(skill_md: str, heading_re: re.Pattern[str]) -> str | None:
    match = heading_re.search(skill_md)
    if match is None:
        return None
    rest = skill_md[match.end() :]
    following = _NEXT_SECTION_RE.search(rest)
    return rest[: following.start()] if following else rest


def extract_patterns(skill_md: str) -> list[CodePattern]:
    section = _section(skill_md, _CORE_PATTERNS_RE)
    if section is None:
        logger.debug("No Core Patterns section found in SKILL.md")
        return []

    headings = list(_PATTERN_HEADING_RE.finditer(section))
    patterns: list[CodePattern] = []
    for index, heading in enumerate(headings):
        end = headings[index + 1].start() if index + 1 < len(headings) else len(section)
        body = section[heading.end() : end]
        code = _PYTHON_BLOCK_RE.search(body)
        if code is None:
            continue
        name = heading.group(1).strip()
        description = body[: code.start()].strip()
        patterns.append(
            CodePattern(
                name=name,
                description=description,
                code=code.group(1).strip(),
                category=categorize_pattern(name, description),
            )
        )

    logger.debug("Extracted %d patterns from SKILL.md", len(patterns))
    return patterns


def extract_dependencies(skill_md: str) -> list[str]:
    """Third-party packages named in the Imports section, in order of appearance."""

    section = _section(skill_md, _IMPORTS_RE)
    if section is None:
        logger.debug("No Imports section found in SKILL.md")
        return []

    deps: list[str] = []
    for regex in (_IMPORT_RE, _FROM_IMPORT_RE):
        for match in regex.finditer(section):
            name = match.group(1)
            if is_stdlib_module(name) or is_likely_local_module(name) or name in deps:
                continue
            deps.append(name)

    for match in _PIP_INSTALL_RE.finditer(section):
        if match.group(1) not in deps:
            deps.append(match.group(1))

    logger.debug("Extracted dependencies: %s", deps)
    return deps


def _frontmatter_field(skill_md: str, field: str) -> str | None:
    prefix = f"{field}:"
    for line in skill_md.splitlines()[:10]:
        stripped = line.strip()
        if stripped.startswith(prefix):
            value = stripped[len(prefix) :].strip()
            return value or None
    return None


def extract_name(skill_md: str) -> str | None:
    return _frontmatter_field(skill_md, "name")


def extract_version(skill_md: str) -> str | None:
    version = _frontmatter_field(skill_md, "version")
    if version == "unknown":
        return None
    return version
