"""Ecosystem languages supported by skilldo.

This module centralizes the language options understood across the
application. Keeping it in the domain layer allows both CLI and service
layers to share a single source of truth without creating circular
imports with adapters.
"""

from __future__ import annotations

from enum import Enum

from core.domain.exceptions import UnknownLanguageError


_ALIASES: dict[str, str] = {
    "py": "python",
    "js": "javascript",
    "node": "javascript",
    "npm": "javascript",
    "rs": "rust",
    "golang": "go",
}


class Language(str, Enum):
    """Programming-language ecosystems a SKILL.md can describe."""

    PYTHON = "python"
    JAVASCRIPT = "javascript"
    RUST = "rust"
    GO = "go"

    @classmethod
    def default(cls) -> "Language":
        """Return the default ecosystem used across the application."""

        return cls.PYTHON

    @classmethod
    def from_str(cls, value: str) -> "Language":
        """Parse a user-supplied language name (case-insensitive, aliases allowed)."""

        key = (value or "").strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise UnknownLanguageError(value) from None

    def as_str(self) -> str:
        return self.value

    def ecosystem_term(self) -> str:
        """Word the ecosystem uses for a distributable unit."""

        if self is Language.RUST:
            return "crate"
        if self is Language.GO:
            return "module"
        return "package"
