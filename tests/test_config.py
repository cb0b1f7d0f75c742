"""Tests for settings loading and validation."""

import logging

from pydantic import ValidationError
import pytest

from gencode.config import Settings, configure_structlog
from gencode.core.exceptions import ConfigurationError


class TestSettings:
    """Test defaults, environment parsing and validation."""

    def test_defaults(self, clean_env):
        settings = Settings(_env_file=None)

        assert settings.server_port == 8080
        assert settings.default_model == "deepseek"
        assert settings.max_concurrent_tasks == 5
        assert settings.task_timeout == 600
        assert settings.heartbeat_interval_seconds == 15.0
        assert settings.subscriber_queue_size == 10
        assert settings.idempotency_ttl_hours == 24
        assert settings.cors_origins == ["*"]

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("SERVER_PORT", "9000")
        clean_env.setenv("DEFAULT_MODEL", "openai")
        clean_env.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
        clean_env.setenv("HEARTBEAT_INTERVAL_SECONDS", "2.5")
        clean_env.setenv("IDEMPOTENCY_TTL_HOURS", "2")

        settings = Settings(_env_file=None)

        assert settings.server_port == 9000
        assert settings.default_model == "openai"
        assert settings.cors_origins == ["http://a.test", "http://b.test"]
        assert settings.heartbeat_interval_seconds == 2.5
        assert settings.idempotency_ttl_hours == 2

    def test_unknown_default_model_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_model="claude")

    def test_configured_models(self, make_settings):
        settings = make_settings(openai_api_key="sk-openai")

        assert settings.configured_models() == ["deepseek", "openai"]
        assert settings.api_key_for("openai") == "sk-openai"
        assert settings.api_key_for("unknown") == ""

    def test_validate_required_passes(self, make_settings):
        make_settings().validate_required()

    def test_github_token_required(self, make_settings):
        with pytest.raises(ConfigurationError, match="GITHUB_TOKEN"):
            make_settings(github_token="").validate_required()

    def test_some_llm_key_required(self, make_settings):
        with pytest.raises(ConfigurationError, match="at least one LLM API key"):
            make_settings(deepseek_api_key="").validate_required()

    def test_default_model_key_required(self, make_settings):
        settings = make_settings(default_model="openai")

        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            settings.validate_required()

    def test_cors_credentials_disabled_for_wildcard(self, make_settings):
        assert make_settings().get_cors_config()["allow_credentials"] is False
        config = make_settings(cors_origins="http://a.test").get_cors_config()
        assert config["allow_origins"] == ["http://a.test"]
        assert config["allow_credentials"] is True


class TestConfigureStructlog:
    def test_sets_root_level(self):
        configure_structlog(level="debug", json_logs=True)

        assert logging.getLogger().level == logging.DEBUG

        configure_structlog(level="info", json_logs=False)
        assert logging.getLogger().level == logging.INFO
