"""Plain-text helpers shared by the linter, normalizer, parser and reviewer.

A SKILL.md is Markdown with a YAML-like frontmatter block. None of these
helpers uses a YAML or Markdown parser: the documents are produced by LLMs
and must be inspected exactly as written, malformed parts included.
"""

from __future__ import annotations

import re

FENCE = "```"

_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)```", re.DOTALL)
_PLAIN_FENCE_RE = re.compile(r"```\s*(.*?)```", re.DOTALL)
_PYTHON_FENCE_RE = re.compile(r"```python\s*(.*?)```", re.DOTALL)


def parse_frontmatter(content: str) -> dict[str, str]:
    """Return `key: value` pairs of the leading frontmatter block.

    Empty when the first line does not start with `---`.
    """

    lines = content.splitlines()
    if not lines or not lines[0].startswith("---"):
        return {}

    data: dict[str, str] = {}
    inside = False
    for line in lines:
        if line.strip() == "---":
            if inside:
                break
            inside = True
            continue
        if inside and ":" in line:
            key, value = line.split(":", 1)
            data[key.strip()] = value.strip()
    return data


def frontmatter_value(content: str, key: str) -> str | None:
    """Value of `key` with surrounding quotes removed, or None if absent/empty."""

    value = parse_frontmatter(content).get(key)
    if value is None:
        return None
    value = value.strip().strip('"').strip("'")
    return value or None


def frontmatter_span(content: str) -> tuple[int, int] | None:
    """(start, end) character offsets of the frontmatter block, closing `---` line included."""

    if not content.startswith("---"):
        return None
    first_newline = content.find("\n")
    if first_newline == -1:
        return None
    offset = first_newline + 1
    for line in content[offset:].splitlines(keepends=True):
        if line.strip() == "---":
            return 0, offset + len(line)
        offset += len(line)
    return None


def code_block_mask(lines: list[str]) -> list[bool]:
    """True for every line inside (or opening) a fenced code block."""

    mask: list[bool] = []
    inside = False
    for line in lines:
        if line.lstrip().startswith(FENCE):
            inside = not inside
        mask.append(inside)
    return mask


def extract_section(content: str, heading: str) -> str | None:
    """Body of a `## heading` section up to the next `## ` heading."""

    start = content.find(heading)
    if start == -1:
        return None
    body_start = start + len(heading)
    end = content.find("\n## ", body_start)
    return content[body_start:] if end == -1 else content[body_start:end]


def strip_markdown_fences(content: str) -> str:
    """Unwrap a document that a model wrapped in a single markdown fence."""

    trimmed = content.strip()
    if trimmed.startswith("```markdown") and trimmed.endswith(FENCE):
        return trimmed[len("```markdown") : -len(FENCE)].strip()
    if trimmed.startswith(FENCE) and trimmed.endswith(FENCE) and len(trimmed) >= 2 * len(FENCE):
        return trimmed[len(FENCE) : -len(FENCE)].strip()
    return content


def extract_json_block(text: str) -> str:
    """Best-effort isolation of a JSON object from an LLM reply."""

    trimmed = text.strip()

    match = _JSON_FENCE_RE.search(trimmed)
    if match:
        return match.group(1).strip()

    match = _PLAIN_FENCE_RE.search(trimmed)
    if match and match.group(1).strip().startswith("{"):
        return match.group(1).strip()

    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if 0 <= start < end:
        return trimmed[start : end + 1]

    return trimmed


def extract_python_script(text: str) -> str:
    """Python source from an LLM reply; empty string when none is recognizable."""

    trimmed = text.strip()

    match = _PYTHON_FENCE_RE.search(trimmed)
    if match:
        return match.group(1).strip()

    match = _PLAIN_FENCE_RE.search(trimmed)
    if match:
        inner = match.group(1).strip()
        if not inner.startswith("{"):
            return inner

    if "import " in trimmed or "def " in trimmed or trimmed.startswith("#"):
        return trimmed

    return ""
