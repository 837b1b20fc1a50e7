import pytest

from core.domain.exceptions import LanguageDetectionError, UnknownLanguageError
from core.domain.language import Language
from core.services.detector import detect_language, resolve_language


class TestDetectLanguage:
    """Manifest-based detection."""

    @pytest.mark.parametrize(
        "manifest, expected",
        [
            ("pyproject.toml", Language.PYTHON),
            ("setup.py", Language.PYTHON),
            ("Cargo.toml", Language.RUST),
            ("package.json", Language.JAVASCRIPT),
            ("go.mod", Language.GO),
        ],
    )
    def test_single_manifest(self, tmp_path, manifest, expected):
        (tmp_path / manifest).write_text("", encoding="utf-8")
        assert detect_language(tmp_path) is expected

    def test_python_wins_over_javascript(self, tmp_path):
        (tmp_path / "package.json").write_text("{}", encoding="utf-8")
        (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
        assert detect_language(tmp_path) is Language.PYTHON

    def test_no_manifest(self, tmp_path):
        with pytest.raises(LanguageDetectionError, match="Please specify with --language"):
            detect_language(tmp_path)

    def test_explicit_language_skips_detection(self, tmp_path):
        assert resolve_language(tmp_path, "golang") is Language.GO

    def test_resolve_without_explicit_detects(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text("", encoding="utf-8")
        assert resolve_language(tmp_path, None) is Language.RUST


class TestLanguage:
    @pytest.mark.parametrize("value", ["python", "PY", " Python "])
    def test_python_aliases(self, value):
        assert Language.from_str(value) is Language.PYTHON

    def test_node_alias(self):
        assert Language.from_str("node") is Language.JAVASCRIPT

    def test_unknown_language(self):
        with pytest.raises(UnknownLanguageError, match="Unknown language: cobol"):
            Language.from_str("cobol")

    def test_ecosystem_terms(self):
        assert Language.RUST.ecosystem_term() == "crate"
        assert Language.GO.ecosystem_term() == "module"
        assert Language.PYTHON.ecosystem_term() == "package"
        assert Language.default() is Language.PYTHON
