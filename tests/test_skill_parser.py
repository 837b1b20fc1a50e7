import pytest

from core.domain.models import PatternCategory
from core.services import skill_parser
from core.services.skill_parser import (
    categorize_pattern,
    extract_dependencies,
    extract_name,
    extract_patterns,
    extract_version,
)


class TestPatterns:
    """Core Patterns extraction from a SKILL.md."""

    def test_patterns_from_document(self, valid_skill_md):
        patterns = extract_patterns(valid_skill_md)
        assert [p.category for p in patterns] == [
            PatternCategory.BASIC_USAGE,
            PatternCategory.CONFIGURATION,
            PatternCategory.ERROR_HANDLING,
            PatternCategory.OTHER,
        ]
        assert patterns[0].name == "Basic Application ✅ Current"
        assert patterns[0].code.startswith("from fastapi import FastAPI")

    def test_description_is_prose_before_code(self):
        content = (
            "## Core Patterns\n\n### Retry Setup\n\nConfigure retries once.\n\n"
            "```python\nclient = make_client(retries=3)\n```\n\n## Pitfalls\n"
        )
        (pattern,) = extract_patterns(content)
        assert pattern.description == "Configure retries once."
        assert pattern.category is PatternCategory.CONFIGURATION

    def test_pattern_without_python_block_is_skipped(self):
        content = "## Core Patterns\n\n### Shell only\n\n```bash\nls\n```\n\n### Py\n\n```python\nx = 1\n```\n"
        assert [p.name for p in extract_patterns(content)] == ["Py"]

    def test_no_core_patterns_section(self):
        assert extract_patterns("## Imports\n\n```python\nimport x\n```\n") == []

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Quickstart", PatternCategory.BASIC_USAGE),
            ("Handling exceptions", PatternCategory.ERROR_HANDLING),
            ("Concurrent downloads", PatternCategory.ASYNC_PATTERN),
            ("Streaming responses", PatternCategory.OTHER),
        ],
    )
    def test_categorize(self, name, expected):
        assert categorize_pattern(name, "") is expected


class TestDependencies:
    """Third-party packages from the Imports section."""

    def test_document_dependencies(self, valid_skill_md):
        assert extract_dependencies(valid_skill_md) == ["fastapi", "pydantic"]

    def test_filters_stdlib_and_local_modules(self):
        content = (
            "## Imports\n\n```python\n"
            "import os\nimport json\nimport requests\nimport jwt\n"
            "from utils import helper\nfrom app import create_app\nfrom rich.console import Console\n"
            "```\n\n```bash\npip install httpx-auth\n```\n\n## Core Patterns\n"
        )
        assert extract_dependencies(content) == ["requests", "jwt", "rich", "httpx-auth"]

    def test_short_names_are_treated_as_local(self):
        assert skill_parser.is_likely_local_module("abc")
        assert not skill_parser.is_likely_local_module("PIL")

    def test_no_imports_section(self):
        assert extract_dependencies("## Core Patterns\n") == []


class TestFrontmatterFields:
    def test_name_and_version(self, valid_skill_md):
        assert extract_name(valid_skill_md) == "fastapi"
        assert extract_version(valid_skill_md) == "0.115.0"

    def test_unknown_version_is_none(self):
        assert extract_version("---\nname: x\nversion: unknown\n---\n") is None
