"""
Run script for starting the Twilio to OpenAI Realtime voice relay.

Loads the environment (including a .env file), builds and validates the
configuration once, and serves the FastAPI app with uvicorn using settings
tuned for real-time audio.

Usage:
    python run_relay_server.py [--port PORT] [--host HOST] [--log-level LEVEL] [--loopback]

Environment Variables:
    OPENAI_API_KEY=key        - OpenAI API key (required)
    AGENT_ID=id               - Optional agent identifier sent as a connection header
    PORT=port                 - Server port (default: 3000)
    HOST=host                 - Server host (default: 0.0.0.0)
    PUBLIC_HOST=host          - Host name Twilio should stream to (default: request Host header)
    COMMIT_IDLE_MS=ms         - Caller silence before a turn is committed (default: 800)
    LOOPBACK_ENABLED=true     - Allow ?mode=loopback echo sessions
    LOG_LEVEL=level           - Logging level (default: INFO)

Examples:
    # Run against the Realtime API
    python run_relay_server.py

    # Allow loopback self-test calls on a custom port
    python run_relay_server.py --loopback --port 9000
"""

import argparse
import os
import sys

import uvicorn

from voicerelay.config.env_loader import load_application_config, load_env_file
from voicerelay.config.logging_config import configure_logging
from voicerelay.config.models import ApplicationConfig, LogLevel
from voicerelay.exceptions import ConfigurationError


def parse_args(config: ApplicationConfig, argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Start the Twilio to OpenAI Realtime voice relay"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.server.port,
        help=f"Port to run the server on (default: {config.server.port} from config)",
    )
    parser.add_argument(
        "--host",
        default=config.server.host,
        help=f"Host to bind the server to (default: {config.server.host} from config)",
    )
    parser.add_argument(
        "--log-level",
        default=config.logging.level.value,
        choices=[level.value for level in LogLevel],
        help=f"Logging level (default: {config.logging.level.value} from config)",
    )
    parser.add_argument(
        "--loopback",
        action="store_true",
        help="Allow loopback self-test sessions (?mode=loopback)",
    )
    return parser.parse_args(argv)


def build_config(argv=None) -> ApplicationConfig:
    """Load configuration from the environment and apply command line overrides.

    Raises:
        ConfigurationError: the resulting configuration is unusable
    """
    load_env_file()
    config = load_application_config(validate=False)
    args = parse_args(config, argv)

    config.server.host = args.host
    config.server.port = args.port
    config.logging.level = LogLevel(args.log_level)
    if args.loopback:
        config.bridge.loopback_enabled = True

    config.require_valid()
    return config


def main(argv=None):
    """Main entry point for starting the relay."""
    try:
        config = build_config(argv)
    except ConfigurationError as e:
        print(f"\nError: {e}", file=sys.stderr)
        print("\nSet the missing values in the environment or a .env file.", file=sys.stderr)
        sys.exit(1)

    os.environ["LOG_LEVEL"] = config.logging.level.value
    os.environ["LOG_DIR"] = str(config.logging.log_dir)
    os.environ["LOG_FILE_OUTPUT"] = "true" if config.logging.file_output else "false"
    logger = configure_logging("run")

    logger.info("=== Server Configuration ===")
    logger.info(f"Host: {config.server.host}")
    logger.info(f"Port: {config.server.port}")
    logger.info(f"Log level: {config.logging.level.value}")
    logger.info(f"Media stream path: {config.bridge.media_path}")
    logger.info(f"OpenAI Model: {config.openai.model}")
    logger.info(f"Agent ID configured: {bool(config.openai.agent_id)}")
    logger.info(f"Audio Format: {config.bridge.audio_format}")
    logger.info(f"Idle commit: {config.bridge.idle_commit_ms} ms")
    logger.info(f"Loopback enabled: {config.bridge.loopback_enabled}")
    logger.info("=========================")

    # Imported late so module loggers pick up the level chosen above
    from voicerelay.main import create_app

    app = create_app(config)

    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.value.lower(),
        # Use HTTP/1.1 for lower overhead than HTTP/2
        http="h11" if config.server.http_protocol == "h11" else "auto",
        access_log=config.server.access_log,
        ws_ping_interval=config.server.ws_ping_interval,
        ws_ping_timeout=config.server.ws_ping_timeout,
        loop="asyncio",
    )


if __name__ == "__main__":
    main()
