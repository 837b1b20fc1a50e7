"""SKILL.md linter.

Checks a document against the template (frontmatter, required sections,
code examples) and for the usual signs of LLM degeneration: repeated
lines, gibberish tokens, leaked prompt instructions, truncated fences.
A `security` family flags content that must never reach a coding agent;
the generator treats those findings as fatal.
"""

from __future__ import annotations

import logging
import re

from core.domain.models import LintIssue, Severity
from core.services.skill_document import FENCE, code_block_mask, extract_section, parse_frontmatter

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: tuple[str, ...] = ("name", "description", "version", "ecosystem")
REQUIRED_SECTIONS: tuple[str, ...] = ("## Imports", "## Core Patterns", "## Pitfalls")

MIN_CONTENT_CHARS = 1000
REPEAT_PREFIX_CHARS = 20
REPEAT_MIN_RUN = 10
MAX_TOKEN_CHARS = 80
MAX_LINE_CHARS = 1000

PROMPT_LEAK_PHRASES: tuple[str, ...] = (
    "CRITICAL: Include ALL",
    "CRITICAL: Prioritize PUBLIC APIs",
    "CRITICAL: Mark deprecation status",
    "CRITICAL: This section is MANDATORY",
    "do NOT skip this section",
    "REQUIRED sections:",
    "Focus on the 10-15",
    "Output as JSON",
    "Your job is to",
    "Show the standard import patterns",
    "Add 2 more pitfalls if found",
    "minimum 3, maximum 5 total",
)

# (pattern, description); matched anywhere, code blocks included.
SECURITY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"\brm\s+-[a-z]*r[a-z]*\s+(/|~/?|\$HOME/?)(\s|$|\*)", re.IGNORECASE | re.MULTILINE),
        "recursive delete of home or root",
    ),
    (re.compile(r"\b(curl|wget)\b[^\n|]*\|\s*(sudo\s+)?(ba|z)?sh\b", re.IGNORECASE), "pipes a download into a shell"),
    (re.compile(r"\bmkfs(\.\w+)?\s+/dev/|\bdd\s+if=\S+\s+of=/dev/(sd|nvme|hd)", re.IGNORECASE), "writes to a block device"),
    (re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:"), "fork bomb"),
    (re.compile(r"/dev/tcp/\d|\bnc\s+(-\w+\s+)*-e\s+/bin/(ba)?sh|\bsocat\b[^\n]*exec:", re.IGNORECASE), "reverse shell"),
    (re.compile(r"~/\.ssh/|/etc/shadow\b|~/\.aws/credentials", re.IGNORECASE), "reads credentials outside the project"),
    (re.compile(r"\b(exec|eval)\s*\(\s*(base64\.)?b64decode\(", re.IGNORECASE), "executes an encoded payload"),
    (re.compile(r"ignore (all )?(previous|prior|above) instructions", re.IGNORECASE), "prompt injection"),
)


def _issue(
    severity: Severity,
    category: str,
    message: str,
    suggestion: str | None = None,
) -> LintIssue:
    return LintIssue(severity=severity, category=category, message=message, suggestion=suggestion)


def _is_dotted_identifier(token: str) -> bool:
    if "." not in token:
        return False
    parts = token.split(".")
    return len(parts) >= 2 and all(
        part and len(part) <= 40 and all(c.isalnum() or c == "_" for c in part) for part in parts
    )


class SkillLinter:
    """Stateless SKILL.md checker."""

    def lint(self, content: str) -> list[LintIssue]:
        issues: list[LintIssue] = []
        issues.extend(self.check_frontmatter(content))
        issues.extend(self.check_structure(content))
        issues.extend(self.check_content(content))
        issues.extend(self.check_degeneration(content))
        issues.extend(self.check_security(content))
        issues.sort(key=lambda issue: issue.severity.rank)
        logger.debug("Lint finished: %d issue(s)", len(issues))
        return issues

    def check_frontmatter(self, content: str) -> list[LintIssue]:
        frontmatter = parse_frontmatter(content)
        if not frontmatter:
            return [
                _issue(
                    Severity.ERROR,
                    "frontmatter",
                    "Missing frontmatter (---...---)",
                    "Add frontmatter with name, description, version, ecosystem",
                )
            ]

        issues = [
            _issue(
                Severity.ERROR,
                "frontmatter",
                f"Missing required field: {field}",
                f"Add '{field}: <value>' to frontmatter",
            )
            for field in REQUIRED_FIELDS
            if field not in frontmatter
        ]

        if frontmatter.get("version") == "unknown":
            issues.append(
                _issue(
                    Severity.WARNING,
                    "frontmatter",
                    "Version is 'unknown' — version extraction failed",
                    "Try --version-from git-tag or --version <version> to set explicitly",
                )
            )

        if "license" not in frontmatter:
            issues.append(
                _issue(
                    Severity.WARNING,
                    "frontmatter",
                    "'license' field is missing",
                    "Add 'license: MIT' (or appropriate license) to frontmatter",
                )
            )
        return issues

    def check_structure(self, content: str) -> list[LintIssue]:
        return [
            _issue(
                Severity.ERROR,
                "structure",
                f"Missing required section: {section}",
                f"Add a '{section}' section",
            )
            for section in REQUIRED_SECTIONS
            if section not in content
        ]

    def check_content(self, content: str) -> list[LintIssue]:
        issues: list[LintIssue] = []

        if FENCE not in content:
            issues.append(
                _issue(
                    Severity.ERROR,
                    "content",
                    "No code examples found",
                    "Add code examples in ```python blocks",
                )
            )

        if len(content) < MIN_CONTENT_CHARS:
            issues.append(
                _issue(
                    Severity.WARNING,
                    "content",
                    f"Content is very short ({len(content)} chars)",
                    "Consider adding more examples and explanations",
                )
            )

        if "## Pitfalls" in content:
            has_wrong = "### Wrong" in content or "### ❌" in content
            has_right = "### Right" in content or "### ✅" in content
            if not (has_wrong and has_right):
                issues.append(
                    _issue(
                        Severity.INFO,
                        "content",
                        "Pitfalls section should include 'Wrong' and 'Right' examples",
                        "Use ### Wrong: and ### Right: subsections in Pitfalls",
                    )
                )
            issues.extend(self._check_duplicate_examples(content))

        return issues

    def _check_duplicate_examples(self, content: str) -> list[LintIssue]:
        pitfalls = extract_section(content, "## Pitfalls") or ""
        # Odd chunks of a split on the fence marker are the code blocks.
        blocks = [
            chunk.lstrip("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-").strip()
            for chunk in pitfalls.split(FENCE)[1::2]
        ]
        for current, following in zip(blocks, blocks[1:]):
            if current and current == following:
                return [
                    _issue(
                        Severity.ERROR,
                        "content",
                        "Found identical 'Wrong' and 'Right' examples in Pitfalls section",
                        "Ensure 'Wrong' and 'Right' examples show different code - the examples "
                        "should demonstrate what NOT to do vs what TO do",
                    )
                ]
        return []

    def check_degeneration(self, content: str) -> list[LintIssue]:
        issues: list[LintIssue] = []
        lines = content.splitlines()
        in_code = code_block_mask(lines)

        # Repeated prefix: 10+ consecutive prose lines starting identically.
        i = 0
        while i < len(lines):
            if in_code[i] or len(lines[i]) < REPEAT_PREFIX_CHARS:
                i += 1
                continue
            prefix = lines[i][:REPEAT_PREFIX_CHARS]
            run = 1
            while i + run < len(lines) and not in_code[i + run] and lines[i + run].startswith(prefix):
                run += 1
            if run >= REPEAT_MIN_RUN:
                issues.append(
                    _issue(
                        Severity.ERROR,
                        "degeneration",
                        f"Repetitive content: {run} consecutive lines share prefix '{prefix}'",
                        "LLM output degenerated into repetitive patterns. Regenerate this section.",
                    )
                )
                break
            i += run

        # Gibberish token; one is enough to condemn the output.
        for idx, line in enumerate(lines):
            if in_code[idx]:
                continue
            for word in line.split():
                clean = word.strip("*`_,-")
                if len(clean) > MAX_TOKEN_CHARS and not _is_dotted_identifier(clean):
                    issues.append(
                        _issue(
                            Severity.ERROR,
                            "degeneration",
                            f"Nonsense token detected ({len(clean)} chars): '{clean[:40]}...'",
                            "LLM output contains gibberish. Regenerate this section.",
                        )
                    )
                    return issues

        inside = False
        for line in lines:
            if line.lstrip().startswith(FENCE):
                inside = not inside
                continue
            if inside:
                continue
            for phrase in PROMPT_LEAK_PHRASES:
                if phrase in line:
                    issues.append(
                        _issue(
                            Severity.WARNING,
                            "degeneration",
                            f"Prompt instruction leak: '{phrase}'",
                            "LLM regurgitated prompt instructions into the output. Regenerate this section.",
                        )
                    )
                    break

        fence_count = sum(1 for line in lines if line.lstrip().startswith(FENCE))
        if fence_count % 2:
            issues.append(
                _issue(
                    Severity.ERROR,
                    "degeneration",
                    f"Unclosed code block ({fence_count} fences, expected even number)",
                    "Output was likely truncated by token limit. Regenerate with higher max_tokens.",
                )
            )

        for idx, line in enumerate(lines):
            if not in_code[idx] and len(line) > MAX_LINE_CHARS:
                issues.append(
                    _issue(
                        Severity.ERROR,
                        "degeneration",
                        f"Excessively long line detected ({len(line)} chars)",
                        "Lines over 1000 chars outside code blocks suggest LLM degeneration. "
                        "Regenerate this section.",
                    )
                )
                break

        return issues

    def check_security(self, content: str) -> list[LintIssue]:
        issues: list[LintIssue] = []
        for pattern, description in SECURITY_PATTERNS:
            match = pattern.search(content)
            if match:
                issues.append(
                    _issue(
                        Severity.ERROR,
                        "security",
                        f"Dangerous content ({description}): '{match.group(0).strip()[:60]}'",
                        "Remove this content; SKILL.md files must only teach library usage.",
                    )
                )
        return issues


def summarize(issues: list[LintIssue]) -> tuple[int, int, int]:
    """(errors, warnings, infos)."""

    errors = sum(1 for i in issues if i.severity is Severity.ERROR)
    warnings = sum(1 for i in issues if i.severity is Severity.WARNING)
    return errors, warnings, len(issues) - errors - warnings


def has_errors(issues: list[LintIssue]) -> bool:
    return any(i.severity is Severity.ERROR for i in issues)


def lint_skill(content: str) -> list[LintIssue]:
    return SkillLinter().lint(content)
