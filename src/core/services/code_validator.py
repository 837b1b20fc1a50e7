"""Code validation of a generated SKILL.md (agent 5).

Why it exists:
- A SKILL.md that lints clean can still document APIs that do not exist.
- Asking the LLM to *use* the document (write a script per Core Pattern) and
  running that script is the cheapest end-to-end check of usefulness.

The executor is synchronous (subprocess); calls go through
`asyncio.to_thread` so the event loop stays free.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from adapters.prompt_templates import validation_script_prompt
from core.domain.exceptions import LlmError
from core.domain.models import (
    CodePattern,
    CodeValidationResult,
    ExecutionResult,
    PatternCategory,
    PatternCheck,
    ValidationMode,
)
from core.interfaces.executor import LanguageExecutor
from core.interfaces.llm import LlmClient
from core.services import skill_parser
from core.services.skill_document import extract_python_script

logger = logging.getLogger(__name__)

THOROUGH_PATTERN_COUNT = 3
_PRIORITY_CATEGORIES = (
    PatternCategory.BASIC_USAGE,
    PatternCategory.CONFIGURATION,
    PatternCategory.ERROR_HANDLING,
)


def select_patterns(patterns: Sequence[CodePattern], mode: ValidationMode) -> list[CodePattern]:
    """Patterns to exercise for `mode`.

    Thorough takes the first basic, configuration and error-handling
    patterns, then fills up to three in document order.
    """

    if not patterns:
        return []
    if mode is not ValidationMode.THOROUGH:
        return [patterns[0]]

    selected: list[CodePattern] = []
    for category in _PRIORITY_CATEGORIES:
        match = next((p for p in patterns if p.category is category), None)
        if match is not None:
            selected.append(match)
    for pattern in patterns:
        if len(selected) >= THOROUGH_PATTERN_COUNT:
            break
        if not any(pattern is chosen for chosen in selected):
            selected.append(pattern)
    return selected[:THOROUGH_PATTERN_COUNT]


class CodeValidator:
    def __init__(
        self,
        *,
        llm: LlmClient,
        executor: LanguageExecutor,
        mode: ValidationMode = ValidationMode.THOROUGH,
        custom_instructions: str | None = None,
        install_source: str = "registry",
    ):
        self.llm = llm
        self.executor = executor
        self.mode = mode
        self.custom_instructions = custom_instructions
        self.install_source = install_source

    async def generate_script(self, pattern: CodePattern, *, local_package: str | None = None) -> str:
        prompt = validation_script_prompt(
            pattern,
            custom=self.custom_instructions,
            local_package=local_package,
        )
        response = await self.llm.complete(prompt)
        code = extract_python_script(response)
        if not code:
            raise LlmError("agent5", "no Python code found in the response")
        logger.debug("Generated %d bytes of test code for %s", len(code), pattern.name)
        return code

    async def validate(self, skill_md: str) -> CodeValidationResult:
        logger.info("Agent 5: starting code validation (mode: %s)", self.mode.value)

        patterns = skill_parser.extract_patterns(skill_md)
        deps = skill_parser.extract_dependencies(skill_md)
        package_name = skill_parser.extract_name(skill_md)
        version = skill_parser.extract_version(skill_md)
        if package_name:
            logger.info("  Package: %s %s", package_name, version or "")

        local_package = None
        if self.install_source != "registry" and package_name:
            logger.debug("Local mode (%s): excluding %s from script deps", self.install_source, package_name)
            local_package = package_name

        logger.info("  Found %d patterns and %d dependencies", len(patterns), len(deps))
        if not patterns:
            logger.warning("No patterns found in SKILL.md, skipping validation")
            return CodeValidationResult()

        selected = select_patterns(patterns, self.mode)
        logger.info("  Selected %d pattern(s) to test", len(selected))

        env = await asyncio.to_thread(self.executor.setup_environment, deps)
        checks: list[PatternCheck] = []
        try:
            for pattern in selected:
                logger.info("  Testing pattern: %s", pattern.name)
                try:
                    code = await self.generate_script(pattern, local_package=local_package)
                except LlmError as exc:
                    logger.warning("    Failed to generate test code: %s", exc.message)
                    checks.append(
                        PatternCheck(
                            pattern_name=pattern.name,
                            result=ExecutionResult.failed(f"Code generation failed: {exc.message}"),
                        )
                    )
                    continue

                result = await asyncio.to_thread(self.executor.run_code, env, code)
                if result.is_pass:
                    logger.info("    passed")
                else:
                    logger.warning("    %s", result.status.value)
                    logger.debug("    %s", (result.output.splitlines() or ["(no output)"])[0])
                checks.append(PatternCheck(pattern_name=pattern.name, test_code=code, result=result))
        finally:
            await asyncio.to_thread(self.executor.cleanup, env)

        passed = sum(1 for check in checks if check.result.is_pass)
        failed = len(checks) - passed
        if failed:
            logger.warning("  %d passed, %d failed", passed, failed)
        else:
            logger.info("  All %d tests passed", passed)
        return CodeValidationResult(passed=passed, failed=failed, test_cases=checks)
