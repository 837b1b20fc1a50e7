import pytest

from core.config import ContainerConfig, GenerationConfig, LlmConfig, SkilldoConfig
from core.services import config_check
from core.services.config_check import check_config


def _check(config: SkilldoConfig, environ=None, runtime=True):
    return check_config(
        config,
        source="skilldo.toml",
        environ={} if environ is None else environ,
        runtime_available=lambda name: runtime,
    )


class TestMainLlm:
    """Provider and API key findings for `[llm]`."""

    def test_healthy_default_config(self):
        result = _check(SkilldoConfig(), environ={"AI_API_KEY": "sk"})
        assert not result.has_errors
        assert result.passed[0] == "Config loaded from skilldo.toml"
        assert "Main LLM: AI_API_KEY is set" in result.passed
        assert "Container runtime: docker (available)" in result.passed
        assert result.warnings == []

    def test_missing_key(self):
        result = _check(SkilldoConfig())
        assert result.errors == ["Main LLM: AI_API_KEY is not set"]

    def test_empty_key(self):
        result = _check(SkilldoConfig(), environ={"AI_API_KEY": "  "})
        assert result.errors == ["Main LLM: AI_API_KEY is set but empty"]

    def test_key_env_inferred_from_provider(self):
        config = SkilldoConfig(llm=LlmConfig(provider="gemini", api_key_env=None))
        result = _check(config, environ={"GEMINI_API_KEY": "g"})
        assert "Main LLM: GEMINI_API_KEY is set (inferred from provider)" in result.passed

    def test_keyless_endpoint(self):
        config = SkilldoConfig(llm=LlmConfig(provider="openai-compatible", api_key_env="none", base_url="http://x/v1"))
        result = _check(config)
        assert "Main LLM: no API key needed" in result.passed
        assert "Base URL configured for openai-compatible provider" in result.passed

    def test_openai_compatible_warns_instead_of_failing(self):
        config = SkilldoConfig(llm=LlmConfig(provider="openai-compatible", api_key_env="LOCAL_KEY"))
        result = _check(config)
        assert not result.has_errors
        assert any("LOCAL_KEY is not set (OK for local models" in w for w in result.warnings)
        assert any(w.startswith("openai-compatible provider without base_url") for w in result.warnings)

    def test_unknown_provider(self):
        result = _check(SkilldoConfig(llm=LlmConfig(provider="cohere")), environ={"AI_API_KEY": "k"})
        assert result.errors[0].startswith("Unknown LLM provider: 'cohere'")

    def test_bad_extra_body_json(self):
        config = SkilldoConfig(llm=LlmConfig(extra_body_json="[1, 2]"))
        result = _check(config, environ={"AI_API_KEY": "k"})
        assert result.errors == ["Main LLM extra_body_json: Invalid configuration (extra_body_json): must be a JSON object"]


class TestGenerationChecks:
    """Agent overrides, container runtime and timeouts."""

    def test_missing_runtime_with_agent5(self):
        result = _check(SkilldoConfig(), environ={"AI_API_KEY": "k"}, runtime=False)
        assert result.errors == ["Container runtime 'docker' not found — Agent 5 validation will fail"]

    def test_missing_runtime_without_agent5(self):
        config = SkilldoConfig(generation=GenerationConfig(enable_agent5=False))
        result = _check(config, environ={"AI_API_KEY": "k"}, runtime=False)
        assert not result.has_errors
        assert "Agent 5 disabled" in result.passed
        assert any("Agent 5 disabled, so this is OK" in w for w in result.warnings)

    def test_agent_overrides(self):
        generation = GenerationConfig(
            agent2_llm=LlmConfig(provider="openai", model="gpt-4o", api_key_env="OPENAI_API_KEY"),
            agent5_llm=LlmConfig(provider="mistral", api_key_env="none"),
            review_llm=LlmConfig(provider="gemini", api_key_env="GEMINI_API_KEY"),
        )
        result = _check(SkilldoConfig(generation=generation), environ={"AI_API_KEY": "k", "OPENAI_API_KEY": "o"})

        assert "Agent 2 LLM override: openai (gpt-4o)" in result.passed
        assert "Agent 2 LLM: OPENAI_API_KEY is set" in result.passed
        assert any(e.startswith("Agent 5 LLM override: unknown provider 'mistral'") for e in result.errors)
        assert "Review LLM: GEMINI_API_KEY is not set" in result.errors

    @pytest.mark.parametrize("timeout, warned", [(10, True), (30, False), (120, False)])
    def test_short_container_timeout(self, timeout, warned):
        config = SkilldoConfig(generation=GenerationConfig(container=ContainerConfig(timeout=timeout)))
        result = _check(config, environ={"AI_API_KEY": "k"})
        assert any("is very short" in w for w in result.warnings) is warned

    def test_runtime_probe_defaults_to_executor_check(self, monkeypatch):
        seen = []
        monkeypatch.setattr(config_check, "is_tool_available", lambda name: seen.append(name) or True)
        config = SkilldoConfig(generation=GenerationConfig(container=ContainerConfig(runtime="podman")))
        check_config(config, environ={})
        assert seen == ["podman"]
