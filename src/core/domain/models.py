"""Domain models (Pydantic v2).

Why Pydantic in the domain:
- Strict validation and self-documenting fields (Field) without coupling the
  core to any I/O library.
- Results travel from services to the CLI (and to JSON exports) unchanged.

Note:
- These models describe *what* the information is, not *how* it is obtained.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.domain.language import Language


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return {"error": 0, "warning": 1, "info": 2}[self.value]


class LintIssue(BaseModel):
    """A single finding produced by the SKILL.md linter."""

    model_config = ConfigDict(frozen=True)

    severity: Severity = Field(..., description="How urgently the issue must be fixed.")
    category: str = Field(
        ...,
        min_length=1,
        description="Check family: frontmatter, structure, content, degeneration, security.",
    )
    message: str = Field(..., min_length=1, description="Human readable description.")
    suggestion: str | None = Field(default=None, description="How to fix the issue.")


class CollectedData(BaseModel):
    """Everything the generator needs to know about a repository.

    Why it exists:
    - Decouples file discovery (ecosystem handlers) from prompt building.
    - Each `*_content` field is already budgeted, so agents never see more
      text than the configured token budget allows.
    """

    package_name: str = Field(..., min_length=1, description="Distribution name, lowercased.")
    version: str = Field(default="latest", description="Version the SKILL.md documents.")
    license: str | None = Field(default=None, description="SPDX-ish license string, if found.")
    project_urls: list[tuple[str, str]] = Field(
        default_factory=list,
        description="(label, url) pairs rendered in the References section.",
    )
    language: Language = Field(default=Language.PYTHON)
    source_file_count: int = Field(default=0, ge=0)
    examples_content: str = ""
    test_content: str = ""
    docs_content: str = ""
    source_content: str = ""
    changelog_content: str = ""


class PatternCategory(str, Enum):
    BASIC_USAGE = "basic_usage"
    CONFIGURATION = "configuration"
    ERROR_HANDLING = "error_handling"
    ASYNC_PATTERN = "async_pattern"
    OTHER = "other"


class CodePattern(BaseModel):
    """A `### pattern` entry from the Core Patterns section."""

    name: str
    description: str = ""
    code: str
    category: PatternCategory = PatternCategory.OTHER


class ValidationMode(str, Enum):
    """How many Core Patterns the code validator exercises."""

    THOROUGH = "thorough"
    ADAPTIVE = "adaptive"
    MINIMAL = "minimal"

    @classmethod
    def from_config(cls, value: str | None) -> "ValidationMode":
        """Unknown or empty values fall back to THOROUGH."""

        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.THOROUGH


class ExecutionStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    TIMEOUT = "timeout"


class ExecutionResult(BaseModel):
    """Outcome of running one generated script."""

    status: ExecutionStatus
    output: str = ""

    @classmethod
    def passed(cls, stdout: str) -> "ExecutionResult":
        return cls(status=ExecutionStatus.PASS, output=stdout)

    @classmethod
    def failed(cls, stderr: str) -> "ExecutionResult":
        return cls(status=ExecutionStatus.FAIL, output=stderr)

    @classmethod
    def timed_out(cls, seconds: int) -> "ExecutionResult":
        return cls(
            status=ExecutionStatus.TIMEOUT,
            output=f"Test execution timed out ({seconds} seconds)",
        )

    @property
    def is_pass(self) -> bool:
        return self.status is ExecutionStatus.PASS

    def error_message(self) -> str:
        return "" if self.is_pass else self.output


class PatternCheck(BaseModel):
    """One Core Pattern, the script written for it, and what happened."""

    pattern_name: str
    test_code: str = ""
    result: ExecutionResult


class CodeValidationResult(BaseModel):
    """Aggregate of every pattern exercised by the code validator."""

    passed: int = 0
    failed: int = 0
    test_cases: list[PatternCheck] = Field(default_factory=list)

    @property
    def all_passed(self) -> bool:
        return self.failed == 0 and self.passed > 0

    def generate_feedback(self) -> str | None:
        """Patch instructions for the synthesizer, or None when nothing failed."""

        if self.all_passed or not self.test_cases:
            return None

        lines = [
            "SKILL.md PATCH REQUIRED — Do NOT regenerate from scratch.",
            "",
            f"Validation ran {len(self.test_cases)} code pattern(s): "
            f"{self.passed} passed, {self.failed} failed.",
            "",
        ]
        ok = [c for c in self.test_cases if c.result.is_pass]
        bad = [c for c in self.test_cases if not c.result.is_pass]
        if ok:
            lines.append("PASSED PATTERNS (keep these exactly as-is):")
            lines.extend(f"- {c.pattern_name}" for c in ok)
            lines.append("")
        lines.append("FAILED PATTERNS (fix only these):")
        for case in bad:
            error = case.result.error_message().strip()
            if len(error) > 1500:
                error = error[:1500] + "\n... (truncated)"
            lines.append(f"- {case.pattern_name} [{case.result.status.value}]")
            if error:
                lines.append("  Error:")
                lines.extend(f"    {line}" for line in error.splitlines())
        lines.extend(
            [
                "",
                "Instructions:",
                "- Fix ONLY the failed patterns (imports, names, arguments)",
                "- Keep all other sections EXACTLY as-is",
                "- Output the complete SKILL.md",
            ]
        )
        return "\n".join(lines)


class ReviewIssue(BaseModel):
    severity: str = "error"
    category: str = "accuracy"
    complaint: str = Field(..., min_length=1)
    evidence: str = ""


class ReviewResult(BaseModel):
    """Verdict of the review agent (accuracy + safety)."""

    passed: bool = True
    issues: list[ReviewIssue] = Field(default_factory=list)


class ChangeSignificance(str, Enum):
    SKIP = "skip"
    REGENERATE = "regenerate"


class ChangelogAnalysis(BaseModel):
    significance: ChangeSignificance
    reason: str
    changes_found: list[str] = Field(default_factory=list)
