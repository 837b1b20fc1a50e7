"""Python ecosystem handler.

Responsibility:
- Locate examples, tests, docs, changelog and source files of a Python
  repository.
- Read package metadata (name, version, license, project URLs) from
  pyproject.toml / setup.py / setup.cfg without importing the project.
"""

from __future__ import annotations

import configparser
import logging
import re
import tomllib
from pathlib import Path
from typing import Any

from core.domain.exceptions import CollectionError, NoTestsFoundError
from core.services.versioning import extract_version_pattern

logger = logging.getLogger(__name__)

SKIP_DIRS: frozenset[str] = frozenset(
    {"venv", ".venv", "env", ".env", "__pycache__", ".git", "node_modules", ".tox", "build", "dist", ".eggs"}
)
# Native-code directories of hybrid projects (PyTorch & co).
SKIP_SOURCE_DIRS: frozenset[str] = SKIP_DIRS | {"csrc", "cpp", "cuda"}
SKIP_DOC_DIRS: frozenset[str] = frozenset({"node_modules", "__pycache__", "build", "dist", "_build"})

EXAMPLE_DIRS: tuple[str, ...] = ("examples", "example", "samples", "sample", "demos", "demo")
README_NAMES: tuple[str, ...] = ("README.md", "README.rst", "README.txt", "README")
CHANGELOG_NAMES: tuple[str, ...] = ("HISTORY.md", "CHANGELOG.md", "CHANGES.md", "CHANGES.rst", "CHANGELOG")
INTERNAL_PARTS: frozenset[str] = frozenset({"_internal", "_impl", "testing", "tests", "benchmarks", "tools", "scripts"})

_SETUP_NAME_RE = re.compile(r"""\bname\s*=\s*(['"])(?P<name>[^'"]+)\1""")
_SETUP_LICENSE_RE = re.compile(r"""\blicense\s*=\s*(['"])(?P<license>[^'"]+)\1""")
_SETUP_URL_RE = re.compile(r"""(['"])(?P<key>[^'"]+)\1\s*:\s*(['"])(?P<url>https?://[^'"]+)\3""")


def is_test_file(name: str) -> bool:
    return name.endswith(".py") and (
        name.startswith("test_") or name.startswith("tests_") or name.endswith("_test.py")
    )


def calculate_file_priority(path: Path, repo_path: Path) -> int:
    """Lower reads first: package `__init__` files, then public modules, internals last."""

    try:
        relative = path.relative_to(repo_path)
    except ValueError:
        relative = path
    depth = len(relative.parts)
    name = path.name

    if name == "__init__.py" and depth == 2:
        return 0
    if name == "__init__.py" and depth > 2:
        return 10
    if name.startswith("_") or any(part in INTERNAL_PARTS for part in relative.parts):
        return 100
    if depth == 2:
        return 20
    if depth == 3:
        return 30
    return 50


def _walk(directory: Path, skip: frozenset[str]):
    """Yield files below `directory`, pruning `skip` names; sorted for stable output."""

    try:
        entries = sorted(directory.iterdir())
    except OSError:
        return
    for entry in entries:
        if entry.is_dir():
            if entry.name not in skip:
                yield from _walk(entry, skip)
        elif entry.is_file():
            yield entry


class PythonHandler:
    def __init__(self, repo_path: Path):
        self.repo_path = repo_path
        self._pyproject: dict[str, Any] | None = None

    # --- file discovery ---

    def find_source_files(self) -> list[Path]:
        excluded_roots = {self.repo_path / name for name in EXAMPLE_DIRS}
        files: set[Path] = set()
        for base in (self.repo_path / "src", self.repo_path):
            if not base.is_dir():
                continue
            for path in _walk(base, SKIP_SOURCE_DIRS):
                if path.suffix != ".py" or is_test_file(path.name):
                    continue
                if any(root in path.parents for root in excluded_roots):
                    continue
                files.add(path)

        if not files:
            raise CollectionError(f"No Python source files found in {self.repo_path}")

        ordered = sorted(files, key=lambda p: (calculate_file_priority(p, self.repo_path), str(p)))
        logger.info("Found %d Python source files", len(ordered))
        return ordered

    def find_test_files(self) -> list[Path]:
        files = [p for p in _walk(self.repo_path, SKIP_DIRS) if is_test_file(p.name)]
        if not files:
            raise NoTestsFoundError(str(self.repo_path))
        logger.info("Found %d Python test files", len(files))
        return files

    def find_examples(self) -> list[Path]:
        files: list[Path] = []
        for name in EXAMPLE_DIRS:
            directory = self.repo_path / name
            if directory.is_dir():
                files.extend(p for p in _walk(directory, SKIP_SOURCE_DIRS) if p.suffix == ".py")
        logger.info("Found %d Python example files", len(files))
        return files

    def find_docs(self) -> list[Path]:
        docs: list[Path] = []
        for name in README_NAMES:
            path = self.repo_path / name
            if path.is_file():
                docs.append(path)
                break
        for name in ("docs", "doc"):
            directory = self.repo_path / name
            if directory.is_dir():
                self._collect_docs(directory, docs, depth=0)
        logger.info("Found %d documentation files", len(docs))
        return docs

    def _collect_docs(self, directory: Path, docs: list[Path], *, depth: int) -> None:
        if depth > 10 or directory.name.startswith(".") or directory.name in SKIP_DOC_DIRS:
            return
        for entry in sorted(directory.iterdir()):
            if entry.is_file() and entry.suffix in (".md", ".rst"):
                docs.append(entry)
            elif entry.is_dir():
                self._collect_docs(entry, docs, depth=depth + 1)

    def find_changelog(self) -> Path | None:
        for name in CHANGELOG_NAMES:
            path = self.repo_path / name
            if path.is_file():
                logger.info("Found changelog: %s", name)
                return path
        logger.debug("No changelog found")
        return None

    # --- metadata ---

    def _read(self, name: str) -> str | None:
        path = self.repo_path / name
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8", errors="replace")

    def pyproject(self) -> dict[str, Any]:
        if self._pyproject is None:
            content = self._read("pyproject.toml")
            self._pyproject = {}
            if content is not None:
                try:
                    self._pyproject = tomllib.loads(content)
                except tomllib.TOMLDecodeError as exc:
                    logger.warning("Could not parse pyproject.toml: %s", exc)
        return self._pyproject

    def get_package_name(self) -> str:
        project = self.pyproject().get("project", {})
        name = project.get("name") or self.pyproject().get("tool", {}).get("poetry", {}).get("name")
        if isinstance(name, str) and name.strip():
            return name.strip().lower()

        setup_py = self._read("setup.py")
        if setup_py:
            match = _SETUP_NAME_RE.search(setup_py)
            if match:
                return match.group("name").lower()

        dirname = self.repo_path.resolve().name
        if dirname and dirname not in (".", ".."):
            return dirname.lower()
        return "unknown"

    def get_version(self) -> str:
        for doc in self.find_docs():
            name = doc.name.lower()
            if any(hint in name for hint in ("release", "blog", "whatsnew", "changelog")):
                text = doc.read_text(encoding="utf-8", errors="replace")[:1000]
                for line in text.splitlines():
                    found = extract_version_pattern(line.lower())
                    if found:
                        logger.debug("Found version %s in %s", found, doc.name)
                        return found

        project = self.pyproject().get("project", {})
        version = project.get("version") or self.pyproject().get("tool", {}).get("poetry", {}).get("version")
        if isinstance(version, str) and version.strip():
            return version.strip()

        init = self.repo_path / self.repo_path.resolve().name / "__init__.py"
        if init.is_file():
            for line in init.read_text(encoding="utf-8", errors="replace").splitlines():
                if "__version__" in line and "=" in line:
                    value = line.split("=", 1)[1].strip().strip("\"'")
                    if value[:1].isdigit():
                        return value

        return "latest"

    def get_license(self) -> str | None:
        license_value = self.pyproject().get("project", {}).get("license")
        if isinstance(license_value, str) and license_value.strip():
            return license_value.strip()
        if isinstance(license_value, dict) and isinstance(license_value.get("text"), str):
            text = license_value["text"].strip()
            if text:
                return text

        setup_py = self._read("setup.py")
        if setup_py:
            match = _SETUP_LICENSE_RE.search(setup_py)
            if match:
                return match.group("license").strip()

        setup_cfg = self._read("setup.cfg")
        if setup_cfg:
            parser = configparser.ConfigParser()
            try:
                parser.read_string(setup_cfg)
            except configparser.Error as exc:
                logger.warning("Could not parse setup.cfg: %s", exc)
                return None
            value = parser.get("metadata", "license", fallback="").strip()
            if value:
                return value
        return None

    def get_project_urls(self) -> list[tuple[str, str]]:
        urls = self.pyproject().get("project", {}).get("urls", {})
        if isinstance(urls, dict):
            found = [(str(k), str(v)) for k, v in urls.items() if str(v).startswith("http")]
            if found:
                return found

        setup_py = self._read("setup.py")
        if not setup_py or "project_urls" not in setup_py:
            return []
        start = setup_py.index("project_urls")
        end = setup_py.find("}", start)
        block = setup_py[start : end if end != -1 else None]
        return [(m.group("key"), m.group("url")) for m in _SETUP_URL_RE.finditer(block)]
