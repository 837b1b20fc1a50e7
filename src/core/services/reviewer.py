"""Accuracy and safety review of a generated SKILL.md.

Two phases:
- A (python only): the LLM writes an introspection script (installed
  version, imports, signatures); it runs in a sandbox and its JSON output
  becomes evidence.
- B: the LLM compares document and evidence and returns a JSON verdict.

Sandbox or script trouble never fails the review; it turns into an
`INTROSPECTION SKIPPED/FAILED` line the verdict prompt can read.
"""

from __future__ import annotations

import asyncio
import json
import logging

from pydantic import ValidationError

from adapters.prompt_templates import review_introspect_prompt, review_verdict_prompt
from core.domain.exceptions import DomainError, ReviewParseError
from core.domain.models import ExecutionStatus, ReviewIssue, ReviewResult
from core.interfaces.executor import LanguageExecutor
from core.interfaces.llm import LlmClient
from core.services.skill_document import extract_json_block, extract_python_script, frontmatter_value

logger = logging.getLogger(__name__)

SKIPPED_NON_PYTHON = "INTROSPECTION SKIPPED: only Python is supported for container checks"
SKIPPED_NO_SANDBOX = "INTROSPECTION SKIPPED: container checks disabled"
SKIPPED_NOT_JSON = "INTROSPECTION SKIPPED: script did not produce valid JSON"
SKIPPED_FAILED = "INTROSPECTION SKIPPED: script execution failed"
SKIPPED_TIMEOUT = "INTROSPECTION SKIPPED: script timed out"


def parse_review_response(response: str, *, strict: bool = False) -> ReviewResult:
    """Verdict JSON -> ReviewResult.

    Issues without a `complaint` are dropped. An unparseable response is an
    error in strict mode and a pass otherwise.
    """

    try:
        parsed = json.loads(extract_json_block(response))
    except json.JSONDecodeError as exc:
        logger.warning("review: failed to parse verdict JSON: %s", exc)
        if strict:
            raise ReviewParseError(response) from exc
        logger.warning("review: treating unparseable response as pass")
        return ReviewResult()

    if not isinstance(parsed, dict):
        if strict:
            raise ReviewParseError(response)
        return ReviewResult()

    passed = parsed.get("passed")
    issues: list[ReviewIssue] = []
    for item in parsed.get("issues") or []:
        if not isinstance(item, dict) or not isinstance(item.get("complaint"), str):
            continue
        try:
            issues.append(
                ReviewIssue(
                    severity=str(item.get("severity") or "error"),
                    category=str(item.get("category") or "accuracy"),
                    complaint=item["complaint"],
                    evidence=str(item.get("evidence") or ""),
                )
            )
        except ValidationError:
            continue

    return ReviewResult(passed=passed if isinstance(passed, bool) else True, issues=issues)


class ReviewAgent:
    def __init__(
        self,
        *,
        llm: LlmClient,
        executor: LanguageExecutor | None = None,
        custom_prompt: str | None = None,
        strict: bool = False,
    ):
        self.llm = llm
        self.executor = executor
        self.custom_prompt = custom_prompt
        self.strict = strict

    async def review(self, skill_md: str, *, package_name: str, language: str = "python") -> ReviewResult:
        if language != "python":
            introspection = SKIPPED_NON_PYTHON
        elif self.executor is None:
            introspection = SKIPPED_NO_SANDBOX
        else:
            try:
                introspection = await self.run_introspection(skill_md, package_name)
            except DomainError as exc:
                logger.warning("review: introspection failed: %s", exc.message)
                introspection = f"INTROSPECTION FAILED: {exc.message}"

        prompt = review_verdict_prompt(
            skill_md=skill_md,
            introspection_output=introspection,
            custom=self.custom_prompt,
        )
        response = await self.llm.complete(prompt)
        return parse_review_response(response, strict=self.strict)

    async def run_introspection(self, skill_md: str, package_name: str) -> str:
        assert self.executor is not None
        version = frontmatter_value(skill_md, "version") or ""
        if version == "unknown":
            version = ""

        prompt = review_introspect_prompt(
            skill_md=skill_md,
            package_name=package_name,
            version=version,
            custom=self.custom_prompt,
        )
        script = extract_python_script(await self.llm.complete(prompt))
        if not script:
            return "INTROSPECTION FAILED: LLM returned empty introspection script"
        logger.debug("review: introspection script (%d bytes)", len(script))

        env = await asyncio.to_thread(self.executor.setup_environment, [])
        try:
            result = await asyncio.to_thread(self.executor.run_code, env, script)
        finally:
            await asyncio.to_thread(self.executor.cleanup, env)

        if result.status is ExecutionStatus.TIMEOUT:
            return SKIPPED_TIMEOUT
        if result.status is ExecutionStatus.FAIL:
            logger.warning("review: introspection script failed: %s", result.output[:200])
            return SKIPPED_FAILED
        stdout = result.output.strip()
        if stdout.startswith("{") and stdout.endswith("}"):
            return result.output
        logger.warning("review: introspection output is not JSON, ignoring")
        return SKIPPED_NOT_JSON

    @staticmethod
    def format_feedback(result: ReviewResult) -> str:
        """Patch instructions for the synthesizer; empty when there are no issues."""

        if not result.issues:
            return ""

        lines = ["REVIEW FAILED — Fix the following issues. Do NOT regenerate from scratch.", ""]
        accuracy = [issue for issue in result.issues if issue.category != "safety"]
        safety = [issue for issue in result.issues if issue.category == "safety"]

        if accuracy:
            lines.append("ACCURACY ISSUES:")
            for index, issue in enumerate(accuracy, start=1):
                lines.append(f"{index}. {issue.complaint}")
                lines.append(f"   Evidence: {issue.evidence}")
            lines.append("")

        if safety:
            lines.append("SAFETY ISSUES:")
            lines.extend(f"{index}. {issue.complaint}" for index, issue in enumerate(safety, start=1))
            lines.append("")
        else:
            lines.extend(["SAFETY ISSUES: None", ""])

        lines.extend(
            [
                "Instructions:",
                "- Fix ONLY the listed issues",
                "- Keep all other content EXACTLY as-is",
                "- Output the complete SKILL.md",
            ]
        )
        return "\n".join(lines) + "\n"
