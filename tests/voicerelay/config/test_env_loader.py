"""Tests for loading configuration from environment variables."""

from pathlib import Path

import pytest

from voicerelay.config import env_loader
from voicerelay.config.models import LogLevel
from voicerelay.exceptions import ConfigurationError

ENV_VARS = [
    "HOST",
    "PORT",
    "PUBLIC_HOST",
    "WS_PING_INTERVAL",
    "OPENAI_API_KEY",
    "OPENAI_REALTIME_MODEL",
    "OPENAI_API_BASE_URL",
    "AGENT_ID",
    "OPENAI_CONNECT_TIMEOUT",
    "MEDIA_STREAM_PATH",
    "AUDIO_FORMAT",
    "VOICE",
    "INSTRUCTIONS",
    "COMMIT_IDLE_MS",
    "KEEPALIVE_INTERVAL",
    "GREETING_MODE",
    "LOOPBACK_ENABLED",
    "LOG_LEVEL",
    "LOG_DIR",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(env_loader, "_env_loaded", True)
    return monkeypatch


class TestSafeConvert:
    @pytest.mark.parametrize("value", ["true", "1", "yes", "ON", " True "])
    def test_truthy(self, value):
        assert env_loader.safe_convert(value, bool, False) is True

    def test_falsy(self):
        assert env_loader.safe_convert("false", bool, True) is False

    def test_numbers(self):
        assert env_loader.safe_convert("42", int, 0) == 42
        assert env_loader.safe_convert("1.5", float, 0.0) == 1.5

    def test_invalid_falls_back_to_default(self):
        assert env_loader.safe_convert("abc", int, 7) == 7

    def test_none_is_default(self):
        assert env_loader.safe_convert(None, float, 2.0) == 2.0

    def test_string_or_none(self):
        assert env_loader.safe_string_or_none("  ") is None
        assert env_loader.safe_string_or_none(" x ") == "x"


class TestLoaders:
    def test_requires_load_env_file(self, monkeypatch):
        monkeypatch.setattr(env_loader, "_env_loaded", False)
        with pytest.raises(RuntimeError):
            env_loader.load_server_config()

    def test_defaults(self, clean_env):
        config = env_loader.load_application_config(validate=False)

        assert config.server.port == 3000
        assert config.server.public_host is None
        assert config.openai.api_key is None
        assert config.openai.model == "gpt-4o-realtime-preview"
        assert config.bridge.media_path == "/twilio-media-stream"
        assert config.bridge.audio_format == "g711_ulaw"
        assert config.bridge.idle_commit_ms == 800
        assert config.bridge.keepalive_interval == 15.0
        assert config.bridge.greeting_mode == "auto"
        assert config.bridge.loopback_enabled is False
        assert config.logging.level == LogLevel.INFO

    def test_values_from_environment(self, clean_env):
        clean_env.setenv("PORT", "8080")
        clean_env.setenv("PUBLIC_HOST", "relay.example.com")
        clean_env.setenv("OPENAI_API_KEY", "sk-env")
        clean_env.setenv("AGENT_ID", "agent-7")
        clean_env.setenv("VOICE", "amber")
        clean_env.setenv("COMMIT_IDLE_MS", "650")
        clean_env.setenv("KEEPALIVE_INTERVAL", "5")
        clean_env.setenv("GREETING_MODE", "Always")
        clean_env.setenv("LOOPBACK_ENABLED", "yes")
        clean_env.setenv("LOG_LEVEL", "debug")
        clean_env.setenv("LOG_DIR", "/tmp/relay-logs")

        config = env_loader.load_application_config()

        assert config.server.port == 8080
        assert config.server.public_host == "relay.example.com"
        assert config.openai.api_key == "sk-env"
        assert config.openai.agent_id == "agent-7"
        assert config.bridge.voice == "amber"
        assert config.bridge.idle_commit_ms == 650
        assert config.bridge.keepalive_interval == 5.0
        assert config.bridge.greeting_mode == "always"
        assert config.bridge.loopback_enabled is True
        assert config.logging.level == LogLevel.DEBUG
        assert config.logging.log_dir == Path("/tmp/relay-logs")

    def test_unknown_log_level_falls_back_to_info(self, clean_env):
        clean_env.setenv("LOG_LEVEL", "chatty")
        assert env_loader.load_logging_config().level == LogLevel.INFO

    def test_validation_failure(self, clean_env):
        with pytest.raises(ConfigurationError) as exc_info:
            env_loader.load_application_config()
        assert "OPENAI_API_KEY" in str(exc_info.value)
