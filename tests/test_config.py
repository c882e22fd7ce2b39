"""Tests for settings loading and logging setup."""

import pytest
import structlog

from message_accuracy.config import Settings, YamlSettingsSource
from message_accuracy.log_config import configure_logging


class TestSettings:
    def test_yaml_values(self):
        settings = Settings()
        assert settings.category_baselines["grammar"] == 70
        assert settings.critical_error_threshold == 3
        assert settings.dictionary_path is None
        assert settings.dictionary_language == "en"
        assert settings.strict_zero_grammar

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("ACCURACY_CRITICAL_ERROR_THRESHOLD", "5")
        assert Settings().critical_error_threshold == 5

    def test_init_overrides_env(self, monkeypatch):
        monkeypatch.setenv("ACCURACY_LLM_TIMEOUT_SECONDS", "3")
        assert Settings(llm_timeout_seconds=1.5).llm_timeout_seconds == 1.5

    def test_yaml_source_drops_nulls(self):
        values = YamlSettingsSource(Settings)()
        assert "dictionary_path" not in values
        assert values["grammar_service_url"] == "http://localhost:8081/v2"

    def test_bundled_wordlists(self):
        assert (Settings().wordlists_dir / "cefr.yaml").exists()


class TestLogging:
    @pytest.fixture(autouse=True)
    def _reset(self):
        yield
        structlog.reset_defaults()

    def test_production_renders_json(self):
        configure_logging("production")
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)

    def test_development_renders_console(self):
        configure_logging("development")
        assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)

    def test_env_variable_fallback(self, monkeypatch):
        monkeypatch.setenv("ENV", "PRODUCTION")
        configure_logging()
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
