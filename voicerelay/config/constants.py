"""
Constants and default values used throughout the application.

Keeping them in one place makes it easy to keep the environment loader,
the dataclass defaults and the tests in agreement.
"""

# Logger name used throughout the application
LOGGER_NAME = "voicerelay"

# Telephony side
DEFAULT_MEDIA_STREAM_PATH = "/twilio-media-stream"
KEEPALIVE_MARK_NAME = "keepalive"

# Audio format shared by both legs (no transcoding happens in the bridge)
DEFAULT_AUDIO_FORMAT = "g711_ulaw"
SUPPORTED_AUDIO_FORMATS = ["g711_ulaw", "g711_alaw", "pcm16"]

# Turn-taking: quiet period after the last inbound media frame before we
# commit the input buffer and ask for a response
DEFAULT_IDLE_COMMIT_MS = 800

# Keepalive interval for both legs, in seconds
DEFAULT_KEEPALIVE_INTERVAL = 15.0

# Initial greeting behaviour when the AI leg opens
GREETING_AUTO = "auto"  # greet only when no agent id is configured
GREETING_ALWAYS = "always"
GREETING_NEVER = "never"
GREETING_MODES = [GREETING_AUTO, GREETING_ALWAYS, GREETING_NEVER]

# OpenAI Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview"
DEFAULT_REALTIME_BASE_URL = "wss://api.openai.com"
AGENT_ID_HEADER = "OpenAI-Beta-Agent-Id"

# Server
DEFAULT_PORT = 3000
