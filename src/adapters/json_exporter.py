"""JSON export of lint results.

Why JSON:
- CI jobs and batch scripts can gate on lint results without scraping the
  rich console output.
"""

from __future__ import annotations

import json
from pathlib import Path

from core.domain.models import LintIssue
from core.services.linter import summarize


def lint_report_payload(*, issues: list[LintIssue], source: str) -> dict[str, object]:
    errors, warnings, infos = summarize(issues)
    return {
        "file": source,
        "summary": {"errors": errors, "warnings": warnings, "info": infos},
        "issues": [issue.model_dump(mode="json") for issue in issues],
    }


def export_lint_json(*, issues: list[LintIssue], source: str, output_path: Path) -> Path:
    """Write the lint report as UTF-8 JSON with a stable layout."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = lint_report_payload(issues=issues, source=source)
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
