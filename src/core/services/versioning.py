"""Version resolution for the SKILL.md frontmatter.

Priority: explicit `--version` > `--version-from` strategy > package
metadata. The package strategy walks build files, source, changelogs,
release docs and finally git tags; it never raises and falls back to the
version the collector found, then to `unknown` (which the linter flags).
"""

from __future__ import annotations

import logging
import re
import subprocess
import tomllib
from pathlib import Path

from core.domain.exceptions import VersionExtractionError

logger = logging.getLogger(__name__)

VALID_STRATEGIES: tuple[str, ...] = ("git-tag", "package", "branch", "commit")

_CHANGELOG_NAMES: tuple[str, ...] = (
    "CHANGELOG.md",
    "CHANGELOG.rst",
    "CHANGELOG",
    "CHANGES.md",
    "CHANGES.rst",
    "CHANGES",
    "HISTORY.md",
    "HISTORY.rst",
    "HISTORY",
    "NEWS.md",
    "NEWS.rst",
    "NEWS",
)
_RELEASE_DOC_HINTS: tuple[str, ...] = ("release", "whatsnew", "changelog", "blog")
_EDGE_NOISE_RE = re.compile(r"^[^\d.]+|[^\d.]+$")


def extract_version(
    repo_path: Path,
    explicit: str | None = None,
    strategy: str | None = None,
    *,
    fallback: str | None = None,
) -> str:
    """Resolve the version; `fallback` replaces an `unknown` package lookup."""

    if explicit:
        return explicit

    if strategy and strategy != "package":
        if strategy == "git-tag":
            return extract_from_git_tag(repo_path)
        if strategy == "branch":
            return extract_from_branch(repo_path)
        if strategy == "commit":
            return extract_from_commit(repo_path)
        raise VersionExtractionError(
            f"Unknown version source: {strategy}. Valid options: {', '.join(VALID_STRATEGIES)}"
        )

    found = extract_from_package(repo_path)
    if found == "unknown" and fallback not in (None, "", "latest", "unknown"):
        logger.debug("Using collected version %s", fallback)
        return fallback
    return found


def extract_version_pattern(text: str) -> str | None:
    """First `X.Y[.Z[.W]]` token with a plausible major version (< 100)."""

    for word in text.split():
        clean = _EDGE_NOISE_RE.sub("", word)
        if "." not in clean:
            continue
        parts = clean.split(".")
        if 2 <= len(parts) <= 4 and all(p.isdigit() for p in parts):
            if int(parts[0]) < 100:
                return clean
    return None


def _git(repo_path: Path, *args: str) -> str:
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=repo_path,
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise VersionExtractionError(f"git {' '.join(args)} failed: {exc}") from exc
    if completed.returncode != 0:
        raise VersionExtractionError(f"git {' '.join(args)} failed: {completed.stderr.strip()}")
    return completed.stdout.strip()


def extract_from_git_tag(repo_path: Path) -> str:
    try:
        tag = _git(repo_path, "describe", "--tags", "--abbrev=0")
    except VersionExtractionError as exc:
        raise VersionExtractionError("No git tags found") from exc
    return tag[1:] if tag.startswith("v") else tag


def extract_from_branch(repo_path: Path) -> str:
    try:
        branch = _git(repo_path, "rev-parse", "--abbrev-ref", "HEAD")
    except VersionExtractionError as exc:
        raise VersionExtractionError("Not a git repository") from exc
    return "branch-" + branch.replace("/", "-").replace("_", "-")


def extract_from_commit(repo_path: Path) -> str:
    try:
        sha = _git(repo_path, "rev-parse", "--short=7", "HEAD")
    except VersionExtractionError as exc:
        raise VersionExtractionError("Not a git repository") from exc
    return f"dev-{sha}"


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def _from_pyproject(repo_path: Path) -> str | None:
    content = _read(repo_path / "pyproject.toml")
    if content is None:
        return None
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        logger.debug("Could not parse pyproject.toml: %s", exc)
        return None

    project = data.get("project", {})
    if "version" not in project.get("dynamic", []):
        version = project.get("version")
        if isinstance(version, str) and version.strip():
            return version.strip()

    version = data.get("tool", {}).get("poetry", {}).get("version")
    if isinstance(version, str) and version.strip():
        return version.strip()
    return None


def _from_setup_cfg(repo_path: Path) -> str | None:
    content = _read(repo_path / "setup.cfg")
    if content is None:
        return None
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("version") and "=" in stripped:
            found = extract_version_pattern(stripped.split("=", 1)[1].strip())
            if found:
                return found
    return None


def _from_python_source(repo_path: Path) -> str | None:
    candidates: list[Path] = []
    for prefix in ("src", "."):
        base = repo_path / prefix
        if not base.is_dir():
            continue
        candidates.extend(sorted(p for p in base.iterdir() if p.is_dir() and (p / "__init__.py").exists()))

    for pkg_dir in candidates:
        for filename in ("_version.py", "__init__.py", "version.py"):
            content = _read(pkg_dir / filename)
            if content is None:
                continue
            for line in content.splitlines():
                stripped = line.strip()
                if (stripped.startswith("__version__") or stripped.startswith("VERSION")) and "=" in stripped:
                    rhs = stripped.split("=", 1)[1].strip().strip("\"' ")
                    found = extract_version_pattern(rhs)
                    if found:
                        return found
    return None


def _from_version_txt(repo_path: Path) -> str | None:
    content = _read(repo_path / "version.txt")
    if content is None:
        return None
    trimmed = content.strip()
    leading = re.match(r"[\d.]*", trimmed)
    return extract_version_pattern(leading.group(0) if leading else "") or extract_version_pattern(trimmed)


def _from_changelog(path: Path) -> str | None:
    content = _read(path)
    if content is None:
        return None
    for line in content[:3000].splitlines()[:100]:
        lower = line.lower()
        looks_like_heading = (
            lower.startswith("#") or lower.startswith("[") or lower.startswith("version") or lower[:1].isdigit()
        )
        if not looks_like_heading:
            continue
        found = extract_version_pattern(line)
        if found and " - " not in line and ".." not in line:
            return found
    return None


def _from_release_docs(docs_dir: Path, depth: int = 0) -> str | None:
    if depth > 5 or not docs_dir.is_dir():
        return None
    for entry in sorted(docs_dir.iterdir()):
        if entry.is_file():
            name = entry.name.lower()
            if entry.suffix in (".md", ".rst") and any(hint in name for hint in _RELEASE_DOC_HINTS):
                content = _read(entry)
                found = extract_version_pattern(content[:2000]) if content else None
                if found:
                    return found
        elif entry.is_dir():
            found = _from_release_docs(entry, depth + 1)
            if found:
                return found
    return None


def extract_from_package(repo_path: Path) -> str:
    for strategy in (_from_pyproject, _from_setup_cfg, _from_python_source, _from_version_txt):
        found = strategy(repo_path)
        if found:
            logger.debug("Version %s from %s", found, strategy.__name__)
            return found

    for name in _CHANGELOG_NAMES:
        found = _from_changelog(repo_path / name)
        if found:
            return found

    for docs in ("docs", "doc", "web"):
        found = _from_release_docs(repo_path / docs)
        if found:
            return found

    try:
        return extract_from_git_tag(repo_path)
    except VersionExtractionError:
        logger.debug("No version source found in %s", repo_path)
    return "unknown"
