"""Repository collection.

Why a service:
- Turns a checkout into one `CollectedData` value, already trimmed to the
  character budget, so prompt building never touches the filesystem.
- The ecosystem handler decides *which* files matter; the collector decides
  *how much* of each the agents get to see.

Budget split (characters, `max_source_tokens` is used as-is):
examples 30%, tests 30%, docs 20%, changelog 5%, the rest goes to source
(scaled down for large projects).
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from adapters.ecosystems.python_handler import PythonHandler, calculate_file_priority
from core.domain.exceptions import UnsupportedLanguageError
from core.domain.language import Language
from core.domain.models import CollectedData

logger = logging.getLogger(__name__)

DEFAULT_MAX_SOURCE_CHARS = 100_000


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Skipping unreadable file %s: %s", path, exc)
        return None


def source_budget_for(file_count: int, remaining: int) -> int:
    if file_count > 2000:
        return remaining
    if file_count > 1000:
        return remaining * 60 // 100
    if file_count > 300:
        return remaining * 40 // 100
    return remaining


def _priority_budget(priority: int) -> int | None:
    if priority <= 10:
        return None
    if priority <= 30:
        return 10_000
    if priority <= 50:
        return 2_000
    return 500


def _priority_label(priority: int) -> str:
    if priority <= 10:
        return "critical API"
    if priority <= 30:
        return "public API"
    if priority <= 50:
        return "module"
    return "impl"


def read_files(paths: Sequence[Path], max_chars: int) -> str:
    """Concatenate files in order until `max_chars`; the last one may be cut."""

    parts: list[str] = []
    total = 0
    for path in paths:
        if total >= max_chars:
            logger.info("Reached character limit, truncating remaining files")
            break
        text = _read_text(path)
        if text is None:
            continue
        remaining = max_chars - total
        if len(text) <= remaining:
            parts.append(f"\n\n// File: {path}\n")
            parts.append(text)
            total += len(text)
        else:
            parts.append(f"\n\n// File: {path} (truncated)\n")
            parts.append(text[:remaining])
            total = max_chars
            break

    logger.info("Read %d characters from %d files", total, len(paths))
    return "".join(parts)


def read_files_smart(paths: Sequence[Path], max_chars: int, repo_path: Path) -> str:
    """Like `read_files`, but public API files first and internals only sampled."""

    prioritized = sorted(
        ((calculate_file_priority(path, repo_path), path) for path in paths),
        key=lambda item: item[0],
    )

    parts: list[str] = []
    total = 0
    for priority, path in prioritized:
        if total >= max_chars:
            break
        text = _read_text(path)
        if text is None:
            continue

        limit = _priority_budget(priority)
        take = min(len(text), max_chars - total)
        if limit is not None:
            take = min(take, limit)

        label = _priority_label(priority)
        if take == len(text):
            parts.append(f"\n\n// File: {path} ({label})\n")
            parts.append(text)
        else:
            parts.append(f"\n\n// File: {path} ({label}, sampled)\n")
            parts.append(text[:take])
        total += take

    logger.info("Read %d characters from %d files (smart sampling)", total, len(paths))
    return "".join(parts)


def read_file_limited(path: Path, max_chars: int) -> str:
    return path.read_text(encoding="utf-8", errors="replace")[:max_chars]


class Collector:
    def __init__(self, repo_path: Path, language: Language, *, max_source_chars: int = DEFAULT_MAX_SOURCE_CHARS):
        self.repo_path = repo_path
        self.language = language
        self.max_source_chars = max_source_chars

    async def collect(self) -> CollectedData:
        logger.info("Collecting files for %s", self.language.as_str())
        if self.language is not Language.PYTHON:
            raise UnsupportedLanguageError(self.language.as_str())
        # Pure filesystem work; keep the event loop free for the CLI spinner.
        return await asyncio.to_thread(self._collect_python)

    def detect_package_name(self) -> str:
        return PythonHandler(self.repo_path).get_package_name()

    def _collect_python(self) -> CollectedData:
        handler = PythonHandler(self.repo_path)

        example_paths = handler.find_examples()
        test_paths = handler.find_test_files()
        doc_paths = handler.find_docs()
        source_paths = handler.find_source_files()
        changelog_path = handler.find_changelog()

        budget = self.max_source_chars
        examples_budget = budget * 30 // 100
        tests_budget = budget * 30 // 100
        docs_budget = budget * 20 // 100
        changelog_budget = budget * 5 // 100
        remaining = max(budget - (examples_budget + tests_budget + docs_budget + changelog_budget), 0)

        return CollectedData(
            package_name=handler.get_package_name(),
            version=handler.get_version(),
            license=handler.get_license(),
            project_urls=handler.get_project_urls(),
            language=self.language,
            source_file_count=len(source_paths),
            examples_content=read_files(example_paths, examples_budget),
            test_content=read_files(test_paths, tests_budget),
            docs_content=read_files(doc_paths, docs_budget),
            source_content=read_files_smart(
                source_paths,
                source_budget_for(len(source_paths), remaining),
                self.repo_path,
            ),
            changelog_content=read_file_limited(changelog_path, changelog_budget) if changelog_path else "",
        )
