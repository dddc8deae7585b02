"""Exception taxonomy for the relay.

ParseError is recoverable (the frame is dropped and the call continues).
TransportError and PeerClosed end the call they belong to and nothing else.
ConfigurationError is raised at startup, before any call is accepted.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for all voicerelay errors."""


class ParseError(RelayError):
    """An inbound frame is not valid JSON or misses required fields."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class TransportError(RelayError):
    """A leg reported a transport-level fault."""

    def __init__(self, leg: str, message: str):
        super().__init__(f"{leg}: {message}")
        self.leg = leg


class PeerClosed(RelayError):
    """A leg was closed by its peer, cleanly or not."""

    def __init__(self, leg: str, code: Optional[int] = None, reason: str = ""):
        detail = f"{leg} closed"
        if code is not None:
            detail += f" (code={code}"
            detail += f", reason={reason})" if reason else ")"
        super().__init__(detail)
        self.leg = leg
        self.code = code
        self.reason = reason


class ConfigurationError(RelayError):
    """Required configuration is missing or invalid."""
