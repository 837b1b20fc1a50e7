"""Repository language detection from build manifests."""

from __future__ import annotations

import logging
from pathlib import Path

from core.domain.exceptions import LanguageDetectionError
from core.domain.language import Language

logger = logging.getLogger(__name__)

# Checked in order; the first manifest found decides.
_MANIFESTS: tuple[tuple[tuple[str, ...], Language], ...] = (
    (("pyproject.toml", "setup.py"), Language.PYTHON),
    (("Cargo.toml",), Language.RUST),
    (("package.json",), Language.JAVASCRIPT),
    (("go.mod",), Language.GO),
)


def detect_language(path: Path) -> Language:
    for filenames, language in _MANIFESTS:
        for filename in filenames:
            if (path / filename).exists():
                logger.debug("Found %s in %s -> %s", filename, path, language.value)
                return language
    raise LanguageDetectionError(str(path))


def resolve_language(path: Path, explicit: str | None) -> Language:
    """Explicit `--language` wins; otherwise detect from manifests."""

    if explicit:
        logger.info("Using specified language: %s", explicit)
        return Language.from_str(explicit)
    logger.info("Auto-detecting language...")
    language = detect_language(path)
    logger.info("Detected language: %s", language.value)
    return language
