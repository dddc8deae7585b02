"""
FastAPI application for the Twilio to OpenAI Realtime voice relay.

The app accepts Twilio Media Streams WebSocket connections on the configured
media-stream path and runs one BridgeSession per call. It also serves the
small HTTP surface Twilio and load balancers need: a plain health check, the
voice webhook answering inbound calls with TwiML, and a JSON health endpoint.

The app is built by ``create_app`` from an explicit ApplicationConfig; nothing
in here reads the environment.
"""

from typing import Optional, Set

from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse, Response
from twilio.twiml.voice_response import VoiceResponse

from voicerelay import __version__
from voicerelay.bridge import BridgeSession
from voicerelay.config.logging_config import configure_logging
from voicerelay.config.models import ApplicationConfig
from voicerelay.legs import TelephonyLeg

logger = configure_logging("main")

LOOPBACK_MODE = "loopback"

# Close code sent when an upgrade is refused before the handshake completes
POLICY_VIOLATION = 1008


def matches_media_path(path: str, media_path: str) -> bool:
    """Prefix match on a path-segment boundary.

    ``/twilio-media-stream`` matches itself and ``/twilio-media-stream/abc``,
    but not ``/twilio-media-streamX``.
    """
    prefix = media_path.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


async def accept_media_stream(
    websocket: WebSocket,
    config: ApplicationConfig,
    sessions: Optional[Set[BridgeSession]] = None,
) -> None:
    """Accept or refuse one WebSocket upgrade and run the call to completion.

    Refused upgrades are closed before the handshake completes. Anything that
    escapes a session is logged here so one call never affects another.
    """
    path = websocket.url.path
    if not matches_media_path(path, config.bridge.media_path):
        logger.info(f"Refusing WebSocket upgrade on {path}")
        await websocket.close(code=POLICY_VIOLATION)
        return

    mode = websocket.query_params.get("mode")
    loopback = mode == LOOPBACK_MODE
    if loopback and not config.bridge.loopback_enabled:
        logger.warning("Loopback mode requested but disabled, bridging to the AI service")
        loopback = False

    await websocket.accept()
    logger.info(
        f"Accepted media stream on {path} ({LOOPBACK_MODE if loopback else 'bridge'} mode)"
    )

    session = BridgeSession(TelephonyLeg(websocket), config, loopback=loopback)
    if sessions is not None:
        sessions.add(session)
    try:
        await session.run()
    except Exception as e:
        logger.exception(f"Unhandled error in media stream handler: {e}")
    finally:
        if sessions is not None:
            sessions.discard(session)


def create_app(config: ApplicationConfig) -> FastAPI:
    """Build the FastAPI app.

    Raises:
        ConfigurationError: the configuration is unusable
    """
    config.require_valid()

    app = FastAPI(title="Voice Relay", version=__version__)
    app.state.config = config
    app.state.sessions = set()

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "ok"

    @app.get("/health")
    async def health():
        return {"status": "healthy", "active_sessions": len(app.state.sessions)}

    @app.post("/voice")
    async def voice(request: Request):
        """Answer an inbound Twilio call by connecting it to the media stream."""
        host = config.server.public_host or request.headers.get("host", "localhost")
        stream_url = f"wss://{host}{config.bridge.media_path}"
        logger.info(f"Incoming call, streaming to {stream_url}")

        response = VoiceResponse()
        connect = response.connect()
        connect.stream(url=stream_url)
        return Response(content=str(response), media_type="application/xml")

    @app.websocket("/{path:path}")
    async def media_stream(websocket: WebSocket, path: str):
        await accept_media_stream(websocket, config, app.state.sessions)

    return app
