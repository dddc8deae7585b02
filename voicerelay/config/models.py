"""
Configuration models for the voicerelay application.

This module defines dataclasses for the different configuration domains,
providing type safety and validation for all application settings. A single
ApplicationConfig is built once at startup and handed to the app factory;
nothing below the app reads the environment directly.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from voicerelay.config.constants import (
    AGENT_ID_HEADER,
    DEFAULT_AUDIO_FORMAT,
    DEFAULT_IDLE_COMMIT_MS,
    DEFAULT_KEEPALIVE_INTERVAL,
    DEFAULT_MEDIA_STREAM_PATH,
    DEFAULT_PORT,
    DEFAULT_REALTIME_BASE_URL,
    DEFAULT_REALTIME_MODEL,
    GREETING_ALWAYS,
    GREETING_AUTO,
    GREETING_MODES,
    SUPPORTED_AUDIO_FORMATS,
)
from voicerelay.exceptions import ConfigurationError


class LogLevel(Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class ServerConfig:
    """HTTP/WebSocket server settings."""

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    # Host name Twilio should dial back on; falls back to the request Host header
    public_host: Optional[str] = None
    http_protocol: str = "h11"
    access_log: bool = False
    ws_ping_interval: float = DEFAULT_KEEPALIVE_INTERVAL
    ws_ping_timeout: float = 20.0


@dataclass
class OpenAIConfig:
    """OpenAI Realtime API configuration."""

    api_key: Optional[str] = None
    model: str = DEFAULT_REALTIME_MODEL
    base_url: str = DEFAULT_REALTIME_BASE_URL
    agent_id: Optional[str] = None
    connect_timeout: float = 10.0

    def get_websocket_url(self) -> str:
        """Get the OpenAI Realtime API WebSocket URL."""
        return f"{self.base_url}/v1/realtime?model={self.model}"

    def get_headers(self) -> Dict[str, str]:
        """Get headers for OpenAI API authentication."""
        if not self.api_key:
            raise ConfigurationError("OpenAI API key is required")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        if self.agent_id:
            headers[AGENT_ID_HEADER] = self.agent_id
        return headers


@dataclass
class BridgeConfig:
    """Per-call bridge behaviour."""

    media_path: str = DEFAULT_MEDIA_STREAM_PATH
    audio_format: str = DEFAULT_AUDIO_FORMAT
    voice: Optional[str] = None
    instructions: Optional[str] = None
    idle_commit_ms: int = DEFAULT_IDLE_COMMIT_MS
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL
    greeting_mode: str = GREETING_AUTO
    loopback_enabled: bool = False

    @property
    def idle_commit_seconds(self) -> float:
        return self.idle_commit_ms / 1000.0


@dataclass
class LoggingConfig:
    """Logging configuration settings."""

    level: LogLevel = LogLevel.INFO
    log_dir: Path = field(default_factory=lambda: Path("logs"))
    file_output: bool = True


@dataclass
class ApplicationConfig:
    """Master application configuration containing all domain configs."""

    server: ServerConfig = field(default_factory=ServerConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.openai.api_key:
            errors.append(
                "OpenAI API key is required. Please set the OPENAI_API_KEY environment variable"
            )

        if self.server.port <= 0 or self.server.port > 65535:
            errors.append("Server port must be between 1 and 65535")

        if not self.bridge.media_path.startswith("/"):
            errors.append("Media stream path must start with '/'")

        if self.bridge.audio_format not in SUPPORTED_AUDIO_FORMATS:
            errors.append(
                f"Unsupported audio format: {self.bridge.audio_format} "
                f"(expected one of {', '.join(SUPPORTED_AUDIO_FORMATS)})"
            )

        if self.bridge.idle_commit_ms <= 0:
            errors.append("Idle commit duration must be positive")

        if self.bridge.keepalive_interval <= 0:
            errors.append("Keepalive interval must be positive")

        if self.bridge.greeting_mode not in GREETING_MODES:
            errors.append(
                f"Unknown greeting mode: {self.bridge.greeting_mode} "
                f"(expected one of {', '.join(GREETING_MODES)})"
            )

        return errors

    def require_valid(self) -> None:
        """Raise ConfigurationError if validate() reports any problem."""
        errors = self.validate()
        if errors:
            raise ConfigurationError(
                "Configuration validation failed:\n"
                + "\n".join(f"- {error}" for error in errors)
            )

    def greets_on_connect(self) -> bool:
        """Whether the bridge asks for a response as soon as the AI leg opens."""
        mode = self.bridge.greeting_mode
        if mode == GREETING_AUTO:
            return not self.openai.agent_id
        return mode == GREETING_ALWAYS
