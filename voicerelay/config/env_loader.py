"""
Environment variable loader for voicerelay configuration.

This module handles loading configuration from environment variables,
with type conversion, validation, and fallback to defaults.

Environment variables must be explicitly loaded using load_env_file() before
accessing any configuration functions.
"""

import os
from pathlib import Path
from typing import Optional, Type, TypeVar, cast

from dotenv import load_dotenv

from voicerelay.config.constants import (
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_IDLE_COMMIT_MS,
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_MEDIA_STREAM_PATH,
    DEFAULT_PORT,
    DEFAULT_REALTIME_BASE_URL,
    DEFAULT_REALTIME_MODEL,
    GREETING_AUTO,
)
from voicerelay.config.models import (
    ApplicationConfig,
    BridgeConfig,
    LoggingConfig,
    LogLevel,
    OpenAIConfig,
    ServerConfig,
)

# Track if environment variables have been loaded
_env_loaded = False


def load_env_file(env_file: Optional[str] = None) -> None:
    """Load environment variables from a .env file.

    This function must be called before accessing any configuration functions.

    Args:
        env_file: Path to the .env file. If None, uses default behavior.
    """
    global _env_loaded
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    _env_loaded = True


def _check_env_loaded() -> None:
    """Check if environment variables have been loaded, raise error if not."""
    if not _env_loaded:
        raise RuntimeError(
            "Environment variables not loaded. Call load_env_file() before accessing configuration."
        )


T = TypeVar("T")


def safe_convert(value: Optional[str], target_type: Type[T], default: T) -> T:
    """Safely convert environment variable string to target type."""
    if value is None:
        return default

    try:
        if target_type == bool:
            return cast(T, value.strip().lower() in ("true", "1", "yes", "on"))
        elif target_type == int:
            return cast(T, int(value))
        elif target_type == float:
            return cast(T, float(value))
        elif target_type == str:
            return cast(T, value)
        elif target_type == Path:
            return cast(T, Path(value))
        else:
            return default
    except (ValueError, TypeError):
        return default


def safe_string_or_none(value: Optional[str]) -> Optional[str]:
    """Convert environment variable to string or None if empty."""
    if value is None or value.strip() == "":
        return None
    return value.strip()


def load_server_config() -> ServerConfig:
    """Load server configuration from environment variables."""
    _check_env_loaded()

    return ServerConfig(
        host=os.getenv("HOST", "0.0.0.0"),
        port=safe_convert(os.getenv("PORT"), int, DEFAULT_PORT),
        public_host=safe_string_or_none(os.getenv("PUBLIC_HOST")),
        http_protocol=os.getenv("HTTP_PROTOCOL", "h11"),
        access_log=safe_convert(os.getenv("ACCESS_LOG"), bool, False),
        ws_ping_interval=safe_convert(
            os.getenv("WS_PING_INTERVAL"), float, DEFAULT_KEEPALIVE_INTERVAL
        ),
        ws_ping_timeout=safe_convert(os.getenv("WS_PING_TIMEOUT"), float, 20.0),
    )


def load_openai_config() -> OpenAIConfig:
    """Load OpenAI configuration from environment variables."""
    _check_env_loaded()

    return OpenAIConfig(
        api_key=safe_string_or_none(os.getenv("OPENAI_API_KEY")),
        model=os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL),
        base_url=os.getenv("OPENAI_API_BASE_URL", DEFAULT_REALTIME_BASE_URL),
        agent_id=safe_string_or_none(os.getenv("AGENT_ID")),
        connect_timeout=safe_convert(os.getenv("OPENAI_CONNECT_TIMEOUT"), float, 10.0),
    )


def load_bridge_config() -> BridgeConfig:
    """Load bridge configuration from environment variables."""
    _check_env_loaded()

    return BridgeConfig(
        media_path=os.getenv("MEDIA_STREAM_PATH", DEFAULT_MEDIA_STREAM_PATH),
        audio_format=os.getenv("AUDIO_FORMAT", DEFAULT_AUDIO_FORMAT),
        voice=safe_string_or_none(os.getenv("VOICE")),
        instructions=safe_string_or_none(os.getenv("INSTRUCTIONS")),
        idle_commit_ms=safe_convert(
            os.getenv("COMMIT_IDLE_MS"), int, DEFAULT_IDLE_COMMIT_MS
        ),
        keepalive_interval=safe_convert(
            os.getenv("KEEPALIVE_INTERVAL"), float, DEFAULT_KEEPALIVE_INTERVAL
        ),
        greeting_mode=os.getenv("GREETING_MODE", GREETING_AUTO).strip().lower(),
        loopback_enabled=safe_convert(os.getenv("LOOPBACK_ENABLED"), bool, False),
    )


def load_logging_config() -> LoggingConfig:
    """Load logging configuration from environment variables."""
    _check_env_loaded()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = LogLevel.INFO
    try:
        log_level = LogLevel(log_level_str)
    except ValueError:
        pass

    return LoggingConfig(
        level=log_level,
        log_dir=Path(os.getenv("LOG_DIR", "logs")),
        file_output=safe_convert(os.getenv("LOG_FILE_OUTPUT"), bool, True),
    )


def load_application_config(validate: bool = True) -> ApplicationConfig:
    """Load complete application configuration from environment variables.

    Raises:
        ConfigurationError: if ``validate`` is set and the configuration is unusable
    """
    _check_env_loaded()

    config = ApplicationConfig(
        server=load_server_config(),
        openai=load_openai_config(),
        bridge=load_bridge_config(),
        logging=load_logging_config(),
    )

    if validate:
        config.require_valid()

    return config
