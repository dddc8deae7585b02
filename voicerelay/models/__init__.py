"""Wire models for the telephony and Realtime WebSocket protocols."""
