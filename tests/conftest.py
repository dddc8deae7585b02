"""
Pytest configuration file for the voicerelay test suite.

This file contains fixtures that are shared across multiple test files.
"""

import logging
import os

# Keep module loggers off the filesystem while testing
os.environ.setdefault("LOG_FILE_OUTPUT", "false")

import pytest

from voicerelay.config.models import ApplicationConfig, BridgeConfig, OpenAIConfig


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def app_config():
    """A valid configuration with no agent id and greeting disabled."""
    return ApplicationConfig(
        openai=OpenAIConfig(api_key="sk-test"),
        bridge=BridgeConfig(greeting_mode="never"),
    )
