"""SKILL.md generation pipeline.

This module orchestrates the five agents so the CLI only collects, calls
`Generator.generate` and writes the result:

1. Agents 1-3 extract the API surface, usage patterns and conventions
   (concurrently by default).
2. Agent 4 synthesizes a SKILL.md, or patches an existing one.
3. A validation loop lints the document and, for Python, lets agent 5
   exercise its Core Patterns; failures are fed back to agent 4 as patch
   instructions.
4. An optional review pass, then frontmatter/References normalization.

Security lint findings are never sent back to the model: they abort the run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from adapters import prompt_templates as prompts
from adapters.executors import ContainerExecutor
from core.config import SkilldoConfig
from core.domain.exceptions import DomainError, SecurityViolationError
from core.domain.language import Language
from core.domain.models import CollectedData, LintIssue, Severity
from core.interfaces.executor import LanguageExecutor
from core.interfaces.llm import LlmClient
from core.services.code_validator import CodeValidator
from core.services.linter import SkillLinter
from core.services.normalizer import normalize_skill_md
from core.services.reviewer import ReviewAgent
from core.services.skill_document import strip_markdown_fences

logger = logging.getLogger(__name__)


def _security_findings(issues: list[LintIssue]) -> list[str]:
    return [issue.message for issue in issues if issue.category == "security"]


def _error_lines(issues: list[LintIssue]) -> list[str]:
    return [f"- [{i.category}] {i.message}" for i in issues if i.severity is Severity.ERROR]


def agent1_input(data: CollectedData) -> str:
    """Examples beat tests as API context; tests beat nothing."""

    if data.examples_content:
        return f"# Examples (High-level API)\n{data.examples_content}\n\n# Source Code\n{data.source_content}"
    if data.test_content:
        return f"# Test Code (API usage patterns)\n{data.test_content}\n\n# Source Code\n{data.source_content}"
    return data.source_content


def agent2_input(data: CollectedData) -> str:
    if data.examples_content:
        return (
            f"# Example Files (Real Usage)\n{data.examples_content}\n\n"
            f"# Test Files (API Usage)\n{data.test_content}"
        )
    return data.test_content


def agent3_input(data: CollectedData) -> str:
    return f"{data.docs_content}\n\n{data.changelog_content}"


@dataclass
class AgentClients:
    """Main client plus optional per-agent overrides (`[generation.agentN_llm]`)."""

    default: LlmClient
    overrides: dict[int, LlmClient] = field(default_factory=dict)
    review: LlmClient | None = None

    def for_agent(self, agent: int) -> LlmClient:
        return self.overrides.get(agent, self.default)

    def for_review(self) -> LlmClient:
        return self.review or self.default


class Generator:
    def __init__(
        self,
        *,
        clients: AgentClients,
        config: SkilldoConfig | None = None,
        existing_skill: str | None = None,
        model_name: str | None = None,
        executor: LanguageExecutor | None = None,
    ):
        self.clients = clients
        self.config = config or SkilldoConfig()
        self.existing_skill = existing_skill
        self.model_name = model_name
        self._executor = executor
        self.linter = SkillLinter()

    @property
    def executor(self) -> LanguageExecutor:
        if self._executor is None:
            self._executor = ContainerExecutor(self.config.generation.container, language="python")
        return self._executor

    async def _complete(self, agent: int, prompt: str) -> str:
        return await self.clients.for_agent(agent).complete(prompt)

    async def extract(self, data: CollectedData) -> tuple[str, str, str]:
        """Run agents 1-3; returns (api_surface, patterns, context)."""

        p = self.config.prompts
        language = data.language.as_str()
        term = data.language.ecosystem_term()
        agent1_prompt = prompts.extract_prompt(
            package_name=data.package_name,
            version=data.version,
            source_code=agent1_input(data),
            source_file_count=data.source_file_count,
            language=language,
            ecosystem_term=term,
            custom=p.custom_for(1),
            overwrite=p.is_overwrite(1),
        )
        agent2_prompt = prompts.map_prompt(
            package_name=data.package_name,
            version=data.version,
            test_code=agent2_input(data),
            language=language,
            ecosystem_term=term,
            custom=p.custom_for(2),
            overwrite=p.is_overwrite(2),
        )
        agent3_prompt = prompts.learn_prompt(
            package_name=data.package_name,
            version=data.version,
            docs_and_changelog=agent3_input(data),
            language=language,
            ecosystem_term=term,
            custom=p.custom_for(3),
            overwrite=p.is_overwrite(3),
        )

        if self.config.generation.parallel_extraction:
            logger.info("Running agents 1-3 in parallel...")
            api_surface, patterns, context = await asyncio.gather(
                self._complete(1, agent1_prompt),
                self._complete(2, agent2_prompt),
                self._complete(3, agent3_prompt),
            )
        else:
            logger.info("Running agents 1-3 sequentially...")
            api_surface = await self._complete(1, agent1_prompt)
            logger.info("Agent 1 complete")
            patterns = await self._complete(2, agent2_prompt)
            logger.info("Agent 2 complete")
            context = await self._complete(3, agent3_prompt)
            logger.info("Agent 3 complete")

        logger.info("Agents 1-3: all extractions complete")
        return api_surface, patterns, context

    async def synthesize(self, data: CollectedData, api_surface: str, patterns: str, context: str) -> str:
        if self.existing_skill is not None:
            logger.info("Agent 4: updating existing SKILL.md...")
            prompt = prompts.update_prompt(
                package_name=data.package_name,
                version=data.version,
                existing_skill=self.existing_skill,
                api_surface=api_surface,
                patterns=patterns,
                context=context,
            )
        else:
            logger.info("Agent 4: synthesizing SKILL.md...")
            prompt = prompts.create_prompt(
                package_name=data.package_name,
                version=data.version,
                license=data.license,
                project_urls=data.project_urls,
                ecosystem=data.language.as_str(),
                ecosystem_term=data.language.ecosystem_term(),
                api_surface=api_surface,
                patterns=patterns,
                context=context,
                custom=self.config.prompts.custom_for(4),
                overwrite=self.config.prompts.is_overwrite(4),
            )
        return strip_markdown_fences(await self._complete(4, prompt))

    async def _patch(self, prompt: str) -> str:
        return strip_markdown_fences(await self._complete(4, prompt))

    def _guard_security(self, issues: list[LintIssue]) -> None:
        findings = _security_findings(issues)
        if findings:
            raise SecurityViolationError(findings)

    async def validate(self, skill_md: str, language: Language) -> str:
        """Lint / agent 5 loop; returns the best document produced."""

        gen = self.config.generation
        passes = max(gen.max_retries, 1)
        run_agent5 = gen.enable_agent5 and language is Language.PYTHON

        for attempt in range(passes):
            last = attempt == passes - 1
            logger.info("Validation pass %d of %d", attempt + 1, passes)

            issues = self.linter.lint(skill_md)
            errors = _error_lines(issues)
            if errors:
                logger.warning("Format validation failed: %d errors", len(errors))
                self._guard_security(issues)
                if last:
                    logger.info("Max retries reached, returning best attempt despite format issues")
                    break
                skill_md = await self._patch(prompts.fix_prompt(skill_md, "\n".join(errors)))
                continue

            logger.info("Format validation passed")
            if not run_agent5:
                break

            logger.info("Agent 5: testing SKILL.md with code generation...")
            validator = CodeValidator(
                llm=self.clients.for_agent(5),
                executor=self.executor,
                mode=gen.get_agent5_mode(),
                custom_instructions=self.config.prompts.custom_for(5),
                install_source=gen.container.install_source,
            )
            try:
                result = await validator.validate(skill_md)
            except DomainError as exc:
                logger.warning("Agent 5 error: %s", exc.message)
                logger.warning("Continuing without agent 5 validation")
                break

            if not result.test_cases:
                logger.info("Agent 5: no testable patterns found, skipping")
                break
            if result.all_passed:
                logger.info("Agent 5: all %d tests passed", result.passed)
                break

            logger.warning("Agent 5: %d passed, %d failed", result.passed, result.failed)
            feedback = result.generate_feedback()
            if last or feedback is None:
                logger.warning("Max retries reached, proceeding despite agent 5 failures")
                break
            skill_md = await self._patch(prompts.patch_prompt(skill_md, feedback))

        return skill_md

    async def review(self, skill_md: str, data: CollectedData) -> str:
        """One review round; issues are patched once and re-checked for security."""

        agent = ReviewAgent(
            llm=self.clients.for_review(),
            executor=self.executor,
            custom_prompt=self.config.prompts.review_custom,
        )
        try:
            result = await agent.review(skill_md, package_name=data.package_name, language=data.language.as_str())
        except DomainError as exc:
            logger.warning("Review error: %s (continuing)", exc.message)
            return skill_md

        if result.passed:
            logger.info("Review passed (%d note(s))", len(result.issues))
            return skill_md

        logger.warning("Review failed with %d issue(s), patching", len(result.issues))
        feedback = ReviewAgent.format_feedback(result)
        if not feedback:
            return skill_md
        patched = await self._patch(prompts.patch_prompt(skill_md, feedback))
        self._guard_security(self.linter.lint(patched))
        return patched

    async def generate(self, data: CollectedData) -> str:
        logger.info("Starting 5-agent pipeline for %s", data.package_name)

        api_surface, patterns, context = await self.extract(data)
        skill_md = await self.synthesize(data, api_surface, patterns, context)
        skill_md = await self.validate(skill_md, data.language)

        if self.config.generation.enable_review:
            skill_md = await self.review(skill_md, data)

        skill_md = normalize_skill_md(
            skill_md,
            package_name=data.package_name,
            version=data.version,
            ecosystem=data.language.as_str(),
            license=data.license,
            project_urls=data.project_urls,
            generated_with=self.model_name,
        )

        post_errors = _error_lines(self.linter.lint(skill_md))
        if post_errors:
            logger.warning("Post-normalization lint found %d errors (returning anyway):", len(post_errors))
            for line in post_errors:
                logger.warning("  %s", line)
        return skill_md
