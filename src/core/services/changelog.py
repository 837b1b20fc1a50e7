"""Changelog analysis: does a new release warrant regenerating the SKILL.md?

Bug-fix-only releases keep the existing file; anything touching the API
surface (breaking changes, new APIs, deprecations, behavior changes)
triggers regeneration.
"""

from __future__ import annotations

import logging

from core.domain.models import ChangelogAnalysis, ChangeSignificance

logger = logging.getLogger(__name__)

_BREAKING = ("breaking", "removed", "incompatible", "no longer", "changed behavior", "must now")
_FEATURE_VERBS = ("added", "new", "introduce")
_FEATURE_NOUNS = ("api", "function", "method", "class", "module")
_DEPRECATION = ("deprecat", "will be removed")
_BEHAVIOR = ("now returns", "now accepts", "changed to", "default changed")
_BUGFIX = ("fix", "bug", "issue", "correct", "patch")
_DATE_HINTS = ("2024", "2025", "2026", "Jan", "Feb", "Mar")


class ChangelogAnalyzer:
    def __init__(self, changelog_content: str):
        self.changelog_content = changelog_content

    def analyze_between_versions(self, old_version: str, new_version: str) -> ChangelogAnalysis:
        logger.info("Analyzing changelog from %s to %s", old_version, new_version)
        changes = self.extract_changes_between(old_version, new_version)
        if not changes:
            return ChangelogAnalysis(
                significance=ChangeSignificance.SKIP,
                reason="No changelog entries found between versions",
            )

        buckets: dict[str, list[str]] = {
            "breaking change(s)": [],
            "new feature(s)": [],
            "deprecation(s)": [],
            "behavior change(s)": [],
        }
        bug_fixes: list[str] = []
        for change in changes:
            kind = classify_change(change)
            if kind == "bugfix":
                bug_fixes.append(change)
            elif kind is not None:
                buckets[kind].append(change)

        reasons = [f"{len(items)} {label}" for label, items in buckets.items() if items]
        if reasons:
            logger.info("Regeneration needed: %s", ", ".join(reasons))
            return ChangelogAnalysis(
                significance=ChangeSignificance.REGENERATE,
                reason=f"API changes detected: {', '.join(reasons)}",
                changes_found=changes,
            )

        logger.info("Only %d bug fix(es) found - skipping regeneration", len(bug_fixes))
        return ChangelogAnalysis(
            significance=ChangeSignificance.SKIP,
            reason=f"Only {len(bug_fixes)} non-API changes (bug fixes, docs, internal)",
            changes_found=changes,
        )

    def extract_changes_between(self, old_version: str, new_version: str) -> list[str]:
        changes: list[str] = []
        in_section = False
        for line in self.changelog_content.splitlines():
            trimmed = line.strip()
            if _is_version_header(trimmed, new_version):
                in_section = True
                continue
            if _is_version_header(trimmed, old_version):
                break
            if not in_section or not trimmed or trimmed.startswith("#"):
                continue
            if trimmed.startswith("---") or any(hint in trimmed for hint in _DATE_HINTS):
                continue
            changes.append(trimmed)

        if not in_section:
            logger.debug("Version %s not found in changelog", new_version)
        return changes


def _is_version_header(line: str, version: str) -> bool:
    prefixes = (
        f"## {version}",
        f"# {version}",
        f"## v{version}",
        f"# v{version}",
        f"[{version}]",
        f"Version {version}",
    )
    for prefix in prefixes:
        if line.startswith(prefix):
            # `## 1.20.0` is not the heading of 1.2
            rest = line[len(prefix) :]
            if not rest or not (rest[0].isdigit() or rest[0] == "."):
                return True
    return False


def classify_change(change: str) -> str | None:
    """Map a changelog line to the first matching class, highest priority first."""

    text = change.lower()
    if any(k in text for k in _BREAKING):
        return "breaking change(s)"
    if any(v in text for v in _FEATURE_VERBS) and any(n in text for n in _FEATURE_NOUNS):
        return "new feature(s)"
    if any(k in text for k in _DEPRECATION):
        return "deprecation(s)"
    if any(k in text for k in _BEHAVIOR):
        return "behavior change(s)"
    if any(k in text for k in _BUGFIX):
        return "bugfix"
    return None
