"""
Configuration package for the voicerelay application.

Usage:

```python
from voicerelay.config.env_loader import load_application_config, load_env_file

load_env_file()
config = load_application_config()
print(f"Server: {config.server.host}:{config.server.port}")

from voicerelay.config.logging_config import configure_logging
logger = configure_logging("my_module")
```
"""

from .models import (
    ApplicationConfig,
    BridgeConfig,
    LoggingConfig,
    LogLevel,
    OpenAIConfig,
    ServerConfig,
)

__all__ = [
    "ApplicationConfig",
    "BridgeConfig",
    "LoggingConfig",
    "LogLevel",
    "OpenAIConfig",
    "ServerConfig",
]
