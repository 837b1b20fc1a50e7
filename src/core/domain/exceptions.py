"""Domain-level exceptions.

Services raise these; the CLI layer turns them into a red message and a
non-zero exit code.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all skilldo exceptions."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


# --- Input / detection errors ---


class UnknownLanguageError(DomainError):
    """Raised when a language name cannot be mapped to a supported ecosystem."""

    def __init__(self, value: str):
        super().__init__(f"Unknown language: {value}")


class LanguageDetectionError(DomainError):
    """Raised when no build manifest reveals the repository language."""

    def __init__(self, path: str):
        super().__init__(f"Could not detect language in {path}. Please specify with --language")


class UnsupportedLanguageError(DomainError):
    """Raised when an operation is requested for an ecosystem without a handler."""

    def __init__(self, language: str, operation: str = "collection"):
        super().__init__(f"{operation.capitalize()} is not supported for {language} yet")


class SkillFileError(DomainError):
    """Raised when a SKILL.md path cannot be read."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{reason}: {path}")


# --- Configuration errors ---


class ConfigError(DomainError):
    """Raised when a config file cannot be read or validated."""

    def __init__(self, source: str, details: str):
        super().__init__(f"Invalid configuration ({source}): {details}")


class MissingApiKeyError(DomainError):
    """Raised when the configured API key environment variable is not set."""

    def __init__(self, env_var: str):
        super().__init__(f"API key not found in environment variable: {env_var}")


class UnknownProviderError(DomainError):
    """Raised when the LLM provider name has no client implementation."""

    def __init__(self, provider: str):
        super().__init__(f"Unknown LLM provider: {provider}")


# --- Process errors ---


class LlmError(DomainError):
    """Raised when a provider call fails after all retries."""

    def __init__(self, provider: str, details: str):
        super().__init__(f"{provider} request failed: {details}")


class CollectionError(DomainError):
    """Raised when repository files cannot be collected."""


class NoTestsFoundError(CollectionError):
    """Raised when a repository has no test files to learn usage from."""

    def __init__(self, path: str):
        super().__init__(f"No tests found in {path}. Tests are required for generating rules.")


class VersionExtractionError(DomainError):
    """Raised when a version strategy is unknown or cannot produce a version."""


class SecurityViolationError(DomainError):
    """Raised when generated content contains dangerous instructions."""

    def __init__(self, findings: list[str]):
        self.findings = list(findings)
        super().__init__(
            "SECURITY: Generated SKILL.md contains dangerous content that cannot be shipped:\n"
            + "\n".join(self.findings)
        )


class ReviewParseError(DomainError):
    """Raised in strict review mode when the verdict is not valid JSON."""

    def __init__(self, raw: str):
        super().__init__(
            "review: LLM returned unparseable response (strict mode). Raw response:\n" + raw[:500]
        )


class UnsafeDependencyError(DomainError):
    """Raised when a dependency name could inject arguments into an installer."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Unsafe dependency name '{name}': {reason}")


class ExecutionEnvironmentError(DomainError):
    """Raised when a sandbox (uv venv or container) cannot be prepared."""
