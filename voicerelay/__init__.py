"""voicerelay: bridge Twilio Media Streams phone calls to the OpenAI Realtime API."""

__version__ = "1.0.0"
