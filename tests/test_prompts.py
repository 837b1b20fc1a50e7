import json
from datetime import datetime, timezone

import pytest

from adapters import prompt_templates as prompts
from adapters.mock_client import MockLlmClient
from core.domain.models import CodePattern, PatternCategory

PATTERN = CodePattern(
    name="Basic Usage",
    description="Create a client.",
    code="import demo\nclient = demo.Client()",
    category=PatternCategory.BASIC_USAGE,
)


def _extract(**overrides):
    kwargs = dict(
        package_name="demo",
        version="1.0.0",
        source_code="def api(): ...",
        source_file_count=12,
        language="python",
        ecosystem_term="package",
    )
    kwargs.update(overrides)
    return prompts.extract_prompt(**kwargs)


class TestExtractionPrompts:
    """Agents 1-3 templates."""

    def test_extract_prompt_contents(self):
        prompt = _extract()
        assert prompt.startswith('You are analyzing the python package "demo" v1.0.0 (12 source files).')
        assert "def api(): ..." in prompt
        assert "LARGE LIBRARY" not in prompt

    @pytest.mark.parametrize(
        "count, marker",
        [(1500, "**LARGE LIBRARY** (1000+ files)"), (2500, "**LARGE LIBRARY ALERT** (2000+ files)")],
    )
    def test_scale_hints(self, count, marker):
        assert marker in _extract(source_file_count=count)

    def test_custom_instructions_are_appended(self):
        prompt = _extract(custom="Ignore the legacy module.")
        assert prompt.rstrip().endswith("## Additional Instructions\n\nIgnore the legacy module.")

    def test_overwrite_replaces_template(self):
        assert _extract(custom="Only list functions.", overwrite=True) == "Only list functions."

    def test_overwrite_without_custom_keeps_template(self):
        assert _extract(overwrite=True).startswith("You are analyzing")

    def test_map_and_learn(self):
        mapped = prompts.map_prompt(
            package_name="demo", version="1", test_code="def test_x(): ...", language="rust", ecosystem_term="crate"
        )
        learned = prompts.learn_prompt(
            package_name="demo", version="1", docs_and_changelog="## 1.0", language="go", ecosystem_term="module"
        )
        assert 'rust crate "demo"' in mapped and "def test_x(): ..." in mapped
        assert 'go module "demo"' in learned and "## 1.0" in learned


class TestSynthesisPrompts:
    def test_create_prompt(self):
        prompt = prompts.create_prompt(
            package_name="demo",
            version="1.0.0",
            license=None,
            project_urls=[("Source", "https://github.com/example/demo")],
            ecosystem="python",
            ecosystem_term="package",
            api_surface='{"apis": []}',
            patterns='{"patterns": []}',
            context='{"pitfalls": []}',
            custom="Mention the CLI.",
        )
        assert prompt.startswith('You are creating an agent rules file for python package "demo" v1.0.0.')
        assert "license: MIT" in prompt
        assert "https://github.com/example/demo" in prompt
        assert prompt.rstrip().endswith("## CUSTOM INSTRUCTIONS FOR THIS REPO\n\nMention the CLI.")

    def test_update_prompt(self):
        prompt = prompts.update_prompt(
            package_name="demo",
            version="2.0.0",
            existing_skill="---\nname: demo\n---",
            api_surface="{}",
            patterns="{}",
            context="{}",
        )
        assert prompt.startswith('You are updating an existing SKILL.md for "demo" to version 2.0.0.')
        assert "---\nname: demo\n---" in prompt

    def test_fix_and_patch_prompts(self):
        fix = prompts.fix_prompt("DOC", "- [structure] Missing required section: ## Imports")
        patch = prompts.patch_prompt("DOC", "FEEDBACK")
        assert fix.startswith("Here is the current SKILL.md:\n\nDOC\n\nFORMAT VALIDATION FAILED:\n- [structure]")
        assert patch == "Here is the current SKILL.md:\n\nDOC\n\nFEEDBACK"


class TestValidationAndReviewPrompts:
    def test_validation_script_prompt(self):
        prompt = prompts.validation_script_prompt(PATTERN, custom="Use pytest.raises for errors.")
        assert "Pattern: Basic Usage" in prompt
        assert "client = demo.Client()" in prompt
        assert 'Print "✓ Test passed: Basic Usage"' in prompt
        assert "installed from a local checkout" not in prompt
        assert prompt.rstrip().endswith("Use pytest.raises for errors.")

    def test_validation_script_prompt_for_local_package(self):
        prompt = prompts.validation_script_prompt(PATTERN, local_package="demo")
        assert '"demo" is installed from a local checkout, NOT from PyPI.' in prompt

    def test_review_prompts(self):
        introspect = prompts.review_introspect_prompt(skill_md="DOC", package_name="demo", version="1.2")
        verdict = prompts.review_verdict_prompt(
            skill_md="DOC",
            introspection_output='{"version_installed": "1.2"}',
            custom="Be strict about dates.",
            now=datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
        assert "LIBRARY: demo (version: 1.2)" in introspect
        assert "Current UTC time: 2025-01-02T03:04:05+00:00" in verdict
        assert '{"version_installed": "1.2"}' in verdict
        assert "Be strict about dates." in verdict


class TestMockClientRouting:
    """The dry-run client answers each agent prompt with the right shape."""

    @pytest.mark.asyncio
    async def test_extraction_agents(self):
        client = MockLlmClient()
        api = json.loads(await client.complete(_extract()))
        mapped = json.loads(
            await client.complete(
                prompts.map_prompt(package_name="d", version="1", test_code="", language="python", ecosystem_term="package")
            )
        )
        learned = json.loads(
            await client.complete(
                prompts.learn_prompt(
                    package_name="d", version="1", docs_and_changelog="", language="python", ecosystem_term="package"
                )
            )
        )
        assert "apis" in api
        assert "patterns" in mapped
        assert "pitfalls" in learned
        assert len(client.calls) == 3

    @pytest.mark.asyncio
    async def test_document_script_and_verdict(self, valid_skill_md):
        client = MockLlmClient()
        assert await client.complete(prompts.patch_prompt("DOC", "FEEDBACK")) == valid_skill_md
        assert "# /// script" in await client.complete(prompts.validation_script_prompt(PATTERN))
        verdict = await client.complete(prompts.review_verdict_prompt(skill_md="DOC", introspection_output="{}"))
        assert json.loads(verdict) == {"passed": True, "issues": []}
        introspection = await client.complete(
            prompts.review_introspect_prompt(skill_md="DOC", package_name="d", version="")
        )
        assert "import json" in introspection

    @pytest.mark.asyncio
    async def test_source_code_does_not_confuse_routing(self):
        source = "# quality gate for a generated SKILL.md\n" * 20
        client = MockLlmClient()
        assert "apis" in json.loads(await client.complete(_extract(source_code=source)))
