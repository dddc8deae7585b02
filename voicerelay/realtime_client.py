"""Opening the AI leg: one WebSocket connection to the OpenAI Realtime API per call."""

import asyncio

import websockets
from websockets.exceptions import WebSocketException

from voicerelay.config.logging_config import configure_logging
from voicerelay.config.models import OpenAIConfig
from voicerelay.exceptions import TransportError
from voicerelay.legs import RealtimeLeg

logger = configure_logging("realtime_client")


async def connect_realtime(openai_config: OpenAIConfig) -> RealtimeLeg:
    """Connect to the Realtime API and wrap the socket in a RealtimeLeg.

    The library's own keepalive is disabled; the bridge's liveness monitor
    sends pings on this connection.

    Raises:
        ConfigurationError: no API key configured
        TransportError: the connection could not be opened
    """
    url = openai_config.get_websocket_url()
    headers = openai_config.get_headers()

    logger.info(f"Connecting to OpenAI Realtime API: {url}")
    try:
        websocket = await websockets.connect(
            url,
            additional_headers=headers,
            ping_interval=None,
            open_timeout=openai_config.connect_timeout,
            max_size=None,
        )
    except (OSError, asyncio.TimeoutError, WebSocketException) as e:
        raise TransportError("realtime", f"connect failed: {e}")

    logger.info("OpenAI Realtime API connection established")
    return RealtimeLeg(websocket)
