import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from adapters.mock_client import SKILL_MD
from core.domain.models import ExecutionResult
from core.interfaces.executor import ExecutionEnv, LanguageExecutor
from core.interfaces.llm import LlmClient


@pytest.fixture
def valid_skill_md() -> str:
    """A complete, lint-clean SKILL.md (the dry-run document)."""
    return SKILL_MD


@pytest.fixture(scope="function")
def mock_llm():
    """Returns a mock LLM client; set `complete.return_value` / `side_effect` per test."""
    llm = MagicMock(spec=LlmClient)
    llm.complete = AsyncMock(return_value="")
    return llm


@pytest.fixture(scope="function")
def fake_executor(tmp_path):
    """Returns a mock sandbox whose scripts always pass."""
    executor = MagicMock(spec=LanguageExecutor)
    executor.setup_environment.return_value = ExecutionEnv(workdir=tmp_path, container_name="skilldo-test-x")
    executor.run_code.return_value = ExecutionResult.passed("✓ Test passed")
    executor.cleanup.return_value = None
    return executor


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Points the user config dir at tmp and runs from an empty cwd."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    # load_env_files writes straight into os.environ.
    monkeypatch.setattr(os, "environ", dict(os.environ))
    return tmp_path


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def python_repo(tmp_path) -> Path:
    """A small src-layout Python project with tests, examples, docs and a changelog."""
    repo = tmp_path / "demo-pkg"
    _write(
        repo / "pyproject.toml",
        "[project]\n"
        'name = "Demo-Pkg"\n'
        'version = "1.2.0"\n'
        'license = "MIT"\n'
        "\n"
        "[project.urls]\n"
        'Homepage = "https://example.com/demo"\n'
        'Source = "https://github.com/example/demo-pkg"\n',
    )
    _write(
        repo / "src" / "demo_pkg" / "__init__.py",
        'from demo_pkg.core import greet\n\n__all__ = ["greet"]\n__version__ = "1.2.0"\n',
    )
    _write(
        repo / "src" / "demo_pkg" / "core.py",
        'def greet(name: str, *, excited: bool = False) -> str:\n'
        '    """Return a greeting."""\n'
        '    return f"Hello, {name}" + ("!" if excited else ".")\n',
    )
    _write(repo / "src" / "demo_pkg" / "_internal.py", "# private helpers\n" + "x = 1\n" * 400)
    _write(
        repo / "tests" / "test_core.py",
        "from demo_pkg import greet\n\n\ndef test_greet():\n    assert greet('Ada') == 'Hello, Ada.'\n",
    )
    _write(repo / "examples" / "basic.py", "from demo_pkg import greet\n\nprint(greet('World', excited=True))\n")
    _write(repo / "README.md", "# demo-pkg\n\nGreets people.\n")
    _write(repo / "docs" / "guide.md", "# Guide\n\nCall `greet()` with a name.\n")
    _write(
        repo / "CHANGELOG.md",
        "# Changelog\n\n## 1.2.0\n\n- Added new function greet_all\n\n## 1.1.0\n\n- Fix typo\n",
    )
    return repo
