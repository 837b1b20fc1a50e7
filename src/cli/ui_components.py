"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from presentation details.
- Lets several commands reuse the same tables and panels (generate and
  lint both print lint reports).
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import ChangelogAnalysis, ChangeSignificance, LintIssue, ReviewResult, Severity
from core.services.config_check import ConfigCheckResult
from core.services.linter import summarize

_SEVERITY_STYLE = {
    Severity.ERROR: ("Errors", "bold red"),
    Severity.WARNING: ("Warnings", "bold yellow"),
    Severity.INFO: ("Info", "bold blue"),
}


def print_banner(console: Console) -> None:
    """Welcome banner; skipped by commands that emit machine-readable output."""

    title = Text("skilldo", style="bold cyan")
    subtitle = Text("Agent rules files for open source libraries", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_lint_report(issues: list[LintIssue]) -> Group | Text:
    """Issues grouped by severity, followed by the summary line."""

    if not issues:
        return Text("No linting issues found!", style="bold green")

    parts: list[Text] = [Text("SKILL.md Linting Results", style="bold")]
    for severity in (Severity.ERROR, Severity.WARNING, Severity.INFO):
        group = [issue for issue in issues if issue.severity is severity]
        if not group:
            continue
        label, style = _SEVERITY_STYLE[severity]
        block = Text()
        block.append(f"\n{label} ({len(group)}):\n", style=style)
        for issue in group:
            block.append(f"  • [{issue.category}] {issue.message}\n")
            if issue.suggestion:
                block.append(f"    hint: {issue.suggestion}\n", style="dim")
        parts.append(block)

    errors, warnings, infos = summarize(issues)
    parts.append(Text(f"Summary: {errors} errors, {warnings} warnings, {infos} info", style="bold"))
    return Group(*parts)


def build_review_table(result: ReviewResult) -> Table:
    status = "PASSED" if result.passed else "FAILED"
    table = Table(title=f"Review: {status} ({len(result.issues)} issue(s))")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Severity", style="red", no_wrap=True)
    table.add_column("Category", style="cyan", no_wrap=True)
    table.add_column("Complaint", style="white")
    table.add_column("Evidence", style="dim")
    for index, issue in enumerate(result.issues, start=1):
        table.add_row(str(index), issue.severity, issue.category, issue.complaint, issue.evidence)
    return table


def build_config_check_table(result: ConfigCheckResult) -> Table:
    table = Table(title="skilldo config-check")
    table.add_column("Status", no_wrap=True)
    table.add_column("Details", style="white")
    for message in result.passed:
        table.add_row("[green]OK[/green]", message)
    for message in result.warnings:
        table.add_row("[yellow]WARN[/yellow]", message)
    for message in result.errors:
        table.add_row("[red]ERROR[/red]", message)
    table.caption = (
        f"{len(result.passed)} passed, {len(result.warnings)} warnings, {len(result.errors)} errors"
    )
    return table


def build_changelog_panel(analysis: ChangelogAnalysis, *, old: str, new: str) -> Panel:
    regenerate = analysis.significance is ChangeSignificance.REGENERATE
    body = Text()
    body.append(f"{analysis.reason}\n", style="bold")
    for change in analysis.changes_found:
        body.append(f"- {change}\n")
    title = Text(
        f"{old} → {new}: {'regenerate' if regenerate else 'skip'}",
        style="bold yellow" if regenerate else "bold green",
    )
    return Panel(body, title=title, border_style="yellow" if regenerate else "green")
