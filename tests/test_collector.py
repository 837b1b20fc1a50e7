import pytest

from adapters.ecosystems import PythonHandler, calculate_file_priority, is_test_file
from core.domain.exceptions import CollectionError, NoTestsFoundError, UnsupportedLanguageError
from core.domain.language import Language
from core.services.collector import Collector, read_files, read_files_smart, source_budget_for


class TestPythonHandler:
    """File discovery and metadata for Python repositories."""

    def test_source_files_ordered_by_priority(self, python_repo):
        names = [p.name for p in PythonHandler(python_repo).find_source_files()]
        assert names == ["__init__.py", "core.py", "_internal.py"]

    def test_tests_examples_docs_changelog(self, python_repo):
        handler = PythonHandler(python_repo)
        assert [p.name for p in handler.find_test_files()] == ["test_core.py"]
        assert [p.name for p in handler.find_examples()] == ["basic.py"]
        assert [p.name for p in handler.find_docs()] == ["README.md", "guide.md"]
        assert handler.find_changelog() == python_repo / "CHANGELOG.md"

    def test_metadata_from_pyproject(self, python_repo):
        handler = PythonHandler(python_repo)
        assert handler.get_package_name() == "demo-pkg"
        assert handler.get_version() == "1.2.0"
        assert handler.get_license() == "MIT"
        assert handler.get_project_urls() == [
            ("Homepage", "https://example.com/demo"),
            ("Source", "https://github.com/example/demo-pkg"),
        ]

    def test_metadata_from_setup_py(self, tmp_path):
        (tmp_path / "setup.py").write_text(
            "from setuptools import setup\n"
            "setup(\n"
            '    name="Legacy_Pkg",\n'
            '    license="BSD",\n'
            '    project_urls={"Docs": "https://docs.example.com", "Tracker": "https://example.com/issues"},\n'
            ")\n",
            encoding="utf-8",
        )
        handler = PythonHandler(tmp_path)
        assert handler.get_package_name() == "legacy_pkg"
        assert handler.get_license() == "BSD"
        assert handler.get_project_urls() == [
            ("Docs", "https://docs.example.com"),
            ("Tracker", "https://example.com/issues"),
        ]

    def test_license_from_setup_cfg(self, tmp_path):
        (tmp_path / "setup.cfg").write_text("[metadata]\nlicense = Apache-2.0\n", encoding="utf-8")
        assert PythonHandler(tmp_path).get_license() == "Apache-2.0"

    def test_directory_name_fallback(self, tmp_path):
        repo = tmp_path / "SomeLib"
        repo.mkdir()
        assert PythonHandler(repo).get_package_name() == "somelib"
        assert PythonHandler(repo).get_version() == "latest"

    def test_no_tests(self, tmp_path):
        (tmp_path / "mod.py").write_text("x = 1\n", encoding="utf-8")
        with pytest.raises(NoTestsFoundError, match="Tests are required"):
            PythonHandler(tmp_path).find_test_files()

    def test_no_sources(self, tmp_path):
        with pytest.raises(CollectionError):
            PythonHandler(tmp_path).find_source_files()

    def test_virtualenvs_are_skipped(self, python_repo):
        venv_file = python_repo / ".venv" / "lib" / "site.py"
        venv_file.parent.mkdir(parents=True)
        venv_file.write_text("x = 1\n", encoding="utf-8")
        assert venv_file not in PythonHandler(python_repo).find_source_files()


class TestPriorities:
    @pytest.mark.parametrize(
        "relative, expected",
        [
            ("pkg/__init__.py", 0),
            ("src/pkg/__init__.py", 10),
            ("pkg/api.py", 20),
            ("src/pkg/api.py", 30),
            ("src/pkg/sub/api.py", 50),
            ("pkg/_private.py", 100),
            ("src/pkg/_internal/api.py", 100),
        ],
    )
    def test_priority(self, tmp_path, relative, expected):
        assert calculate_file_priority(tmp_path / relative, tmp_path) == expected

    @pytest.mark.parametrize(
        "name, expected",
        [("test_api.py", True), ("api_test.py", True), ("tests_util.py", True), ("testing.py", False)],
    )
    def test_is_test_file(self, name, expected):
        assert is_test_file(name) is expected


class TestBudgets:
    """Character budgets applied while reading files."""

    def test_read_files_truncates_last_file(self, tmp_path):
        first = tmp_path / "a.py"
        second = tmp_path / "b.py"
        first.write_text("a" * 30, encoding="utf-8")
        second.write_text("b" * 30, encoding="utf-8")
        content = read_files([first, second], 40)
        assert f"// File: {first}\n" in content
        assert f"// File: {second} (truncated)\n" in content
        assert content.endswith("\n" + "b" * 10)

    def test_smart_reading_samples_internals(self, python_repo):
        pkg = python_repo / "src" / "demo_pkg"
        content = read_files_smart(sorted(pkg.glob("*.py")), 100_000, python_repo)
        assert "__init__.py (critical API)" in content
        assert "core.py (public API)" in content
        assert "_internal.py (impl, sampled)" in content
        assert content.index("__init__.py") < content.index("core.py") < content.index("_internal.py")

    @pytest.mark.parametrize(
        "count, expected",
        [(10, 1000), (500, 400), (1500, 600), (2500, 1000)],
    )
    def test_source_budget_scaling(self, count, expected):
        assert source_budget_for(count, 1000) == expected


class TestCollector:
    @pytest.mark.asyncio
    async def test_collect_python_repo(self, python_repo):
        data = await Collector(python_repo, Language.PYTHON).collect()
        assert data.package_name == "demo-pkg"
        assert data.version == "1.2.0"
        assert data.license == "MIT"
        assert data.source_file_count == 3
        assert "print(greet('World', excited=True))" in data.examples_content
        assert "def test_greet" in data.test_content
        assert "Greets people." in data.docs_content
        assert "def greet" in data.source_content
        assert data.changelog_content.startswith("# Changelog")

    @pytest.mark.asyncio
    async def test_budget_limits_content(self, python_repo):
        data = await Collector(python_repo, Language.PYTHON, max_source_chars=1000).collect()
        assert len(data.changelog_content) <= 50
        assert data.test_content.count("greet") >= 1

    @pytest.mark.asyncio
    async def test_other_languages_are_not_collected(self, tmp_path):
        with pytest.raises(UnsupportedLanguageError, match="rust"):
            await Collector(tmp_path, Language.RUST).collect()
