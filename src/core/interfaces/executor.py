"""Sandboxed code execution contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from core.domain.models import ExecutionResult


@dataclass
class ExecutionEnv:
    """Scratch directory (and, for containers, its name) for one validation run."""

    workdir: Path
    dependencies: list[str] = field(default_factory=list)
    container_name: str | None = None
    python_bin: Path | None = None


@runtime_checkable
class LanguageExecutor(Protocol):
    def setup_environment(self, dependencies: Sequence[str]) -> ExecutionEnv: ...

    def run_code(self, env: ExecutionEnv, code: str) -> ExecutionResult: ...

    def cleanup(self, env: ExecutionEnv) -> None: ...
