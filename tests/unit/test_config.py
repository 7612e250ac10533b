"""
tests/unit/test_config.py — Config Hardening Tests

Covers:
  - Valid config loads cleanly
  - Invalid provider / fallback / log level / iteration cap / port rejected
  - validate_all() raises ConfigError with a numbered list
  - validate_all() catches missing API keys (LLM provider, fallback, E2B)
  - CODEFORGE_CONFIG env var is respected by load_settings()
  - Explicit config_path argument takes priority over env var
"""

from __future__ import annotations

import os
import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError


# ── Helpers ───────────────────────────────────────────────────────────────────

def _make_settings(**overrides):
    from codeforge.config.settings import Settings
    return Settings(**overrides)


def _make_agent_cfg(**kwargs):
    from codeforge.config.settings import AgentConfig
    return AgentConfig(**kwargs)


def _make_llm_cfg(**kwargs):
    from codeforge.config.settings import LLMConfig
    return LLMConfig(**kwargs)


def _make_sandbox_cfg(**kwargs):
    from codeforge.config.settings import SandboxConfig
    return SandboxConfig(**kwargs)


# ── Sub-models ────────────────────────────────────────────────────────────────

class TestAgentConfig:
    def test_defaults(self):
        cfg = _make_agent_cfg()
        assert cfg.name == "code-agent"
        assert cfg.max_iterations == 10
        assert cfg.history_limit == 5
        assert cfg.termination_marker == "<task_summary>"

    def test_zero_iterations_rejected(self):
        with pytest.raises(ValidationError):
            _make_agent_cfg(max_iterations=0)

    def test_negative_history_rejected(self):
        with pytest.raises(ValidationError):
            _make_agent_cfg(history_limit=-1)

    def test_blank_marker_rejected(self):
        with pytest.raises(ValidationError):
            _make_agent_cfg(termination_marker="  ")


class TestLLMConfig:
    def test_defaults(self):
        cfg = _make_llm_cfg()
        assert cfg.default_provider == "gemini"
        assert cfg.default_model == "gemini-2.5-flash"

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _make_llm_cfg(default_provider="ollama")
        assert "not supported" in str(exc_info.value)

    def test_unknown_fallback_rejected(self):
        with pytest.raises(ValidationError):
            _make_llm_cfg(fallback_providers=["openai", "bytez"])

    def test_temperature_range(self):
        with pytest.raises(ValidationError):
            _make_llm_cfg(temperature=3.0)


class TestSandboxConfig:
    def test_defaults(self):
        cfg = _make_sandbox_cfg()
        assert cfg.template == "v0-nextjs-build-new"
        assert cfg.preview_port == 3000

    def test_bad_port_rejected(self):
        with pytest.raises(ValidationError):
            _make_sandbox_cfg(preview_port=70000)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            _make_sandbox_cfg(tool_timeout_seconds=0)

    def test_lifetime_default(self):
        assert _make_sandbox_cfg().lifetime_seconds == 3600

    def test_non_positive_lifetime_rejected(self):
        with pytest.raises(ValidationError):
            _make_sandbox_cfg(lifetime_seconds=0)


class TestSandboxProviderFromSettings:
    def test_lifetime_passed_to_provider(self):
        from codeforge.sandbox.e2b_sandbox import E2BSandboxProvider
        s = _make_settings(E2B_API_KEY="e2b", sandbox={"lifetime_seconds": 900})

        provider = E2BSandboxProvider.from_settings(s)

        assert provider._timeout == 900
        assert provider._api_key == "e2b"

    @pytest.mark.asyncio
    async def test_lifetime_reaches_sandbox_create(self):
        from types import SimpleNamespace
        from unittest.mock import AsyncMock

        from codeforge.sandbox.e2b_sandbox import E2BSandboxProvider
        s = _make_settings(E2B_API_KEY="e2b", sandbox={"lifetime_seconds": 900})
        create = AsyncMock(return_value=SimpleNamespace(sandbox_id="sbx-9"))

        with patch("codeforge.sandbox.e2b_sandbox.AsyncSandbox.create", create):
            sandbox_id = await E2BSandboxProvider.from_settings(s).create("v0-nextjs-build-new")

        assert sandbox_id == "sbx-9"
        assert create.await_args.kwargs["timeout"] == 900
        assert create.await_args.kwargs["template"] == "v0-nextjs-build-new"


class TestLoggingConfig:
    def test_level_upper_cased(self):
        from codeforge.config.settings import LoggingConfig
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level_rejected(self):
        from codeforge.config.settings import LoggingConfig
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")


class TestSettingsCoercion:
    def test_dict_sections_coerced(self):
        s = _make_settings(agent={"max_iterations": 4}, sandbox={"preview_port": 8080})
        assert s.agent.max_iterations == 4
        assert s.sandbox.preview_port == 8080

    def test_api_key_for(self):
        s = _make_settings(OPENAI_API_KEY="sk-o")
        assert s.api_key_for("openai") == "sk-o"
        assert s.api_key_for("gemini") is None


# ── validate_all ─────────────────────────────────────────────────────────────

class TestValidateAll:
    def test_passes_with_all_keys(self):
        s = _make_settings(GEMINI_API_KEY="g", E2B_API_KEY="e2b")
        s.validate_all()  # should not raise

    def test_fails_missing_gemini_key(self):
        from codeforge.config.settings import ConfigError
        s = _make_settings(E2B_API_KEY="e2b")
        with pytest.raises(ConfigError) as exc_info:
            s.validate_all()
        assert "GEMINI_API_KEY" in str(exc_info.value)

    def test_fails_missing_e2b_key(self):
        from codeforge.config.settings import ConfigError
        s = _make_settings(GEMINI_API_KEY="g")
        with pytest.raises(ConfigError) as exc_info:
            s.validate_all()
        assert "E2B_API_KEY" in str(exc_info.value)

    def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-a")
        monkeypatch.setenv("E2B_API_KEY", "e2b")
        s = _make_settings(llm=_make_llm_cfg(default_provider="anthropic"))
        s.validate_all()  # should not raise

    def test_fallback_provider_missing_key_caught(self):
        from codeforge.config.settings import ConfigError
        s = _make_settings(
            llm=_make_llm_cfg(fallback_providers=["openai"]),
            GEMINI_API_KEY="g",
            E2B_API_KEY="e2b",
        )
        with pytest.raises(ConfigError) as exc_info:
            s.validate_all()
        assert "openai" in str(exc_info.value).lower()

    def test_multiple_errors_all_reported_and_numbered(self):
        from codeforge.config.settings import ConfigError
        s = _make_settings()
        object.__setattr__(s.sandbox, "template", "   ")
        with pytest.raises(ConfigError) as exc_info:
            s.validate_all()
        msg = str(exc_info.value)
        assert "3 configuration problem(s)" in msg
        assert "1." in msg and "3." in msg


# ── Config path resolution ────────────────────────────────────────────────────

class TestConfigPathResolution:
    def test_explicit_path_takes_priority(self, tmp_path):
        from codeforge.config.settings import _resolve_config_path
        cfg_file = tmp_path / "custom.yaml"
        env_file = tmp_path / "env.yaml"

        with patch.dict(os.environ, {"CODEFORGE_CONFIG": str(env_file)}):
            resolved = _resolve_config_path(str(cfg_file))
        assert resolved == Path(str(cfg_file))

    def test_env_var_used_when_no_explicit_path(self, tmp_path):
        from codeforge.config.settings import _resolve_config_path
        env_file = tmp_path / "env_config.yaml"

        with patch.dict(os.environ, {"CODEFORGE_CONFIG": str(env_file)}):
            resolved = _resolve_config_path(None)
        assert resolved == Path(str(env_file))

    def test_default_path_when_no_arg_no_env(self):
        from codeforge.config.settings import _resolve_config_path
        assert _resolve_config_path(None) == Path("config/config.yaml")

    def test_load_settings_from_file(self, tmp_path):
        import codeforge.config.settings as cs

        cfg_file = tmp_path / "test_config.yaml"
        cfg_file.write_text(textwrap.dedent("""
            agent:
              max_iterations: 3
            llm:
              default_provider: "openai"
              default_model: "gpt-4o"
            sandbox:
              template: "custom-template"
            unknown_section:
              ignored: true
        """))

        cs._singleton = None
        try:
            settings = cs.load_settings(str(cfg_file))
            assert settings.agent.max_iterations == 3
            assert settings.llm.default_provider == "openai"
            assert settings.sandbox.template == "custom-template"
            assert cs.get_settings() is settings
        finally:
            cs._singleton = None

    def test_missing_file_gives_defaults(self, tmp_path):
        import codeforge.config.settings as cs
        try:
            settings = cs.load_settings(tmp_path / "absent.yaml")
            assert settings.agent.max_iterations == 10
        finally:
            cs._singleton = None
