from pathlib import Path

import pytest

from core.services.linter import SkillLinter, has_errors
from core.services.skill_parser import extract_name, extract_patterns

SKILLS_DIR = Path(__file__).resolve().parents[1] / "skills"


@pytest.mark.parametrize("skill_path", sorted(SKILLS_DIR.glob("*/SKILL.md")), ids=lambda p: p.parent.name)
def test_shipped_skills_lint_clean(skill_path):
    content = skill_path.read_text(encoding="utf-8")
    issues = SkillLinter().lint(content)
    fences = [line for line in content.splitlines() if line.strip().startswith("```")]
    assert len(fences) % 2 == 0
    assert not has_errors(issues), [issue.message for issue in issues]
    assert extract_name(content) == skill_path.parent.name
    assert extract_patterns(content)
