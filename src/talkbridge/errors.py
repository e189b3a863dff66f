"""Library-level exception types for talkbridge."""

from __future__ import annotations


class TalkbridgeError(Exception):
    """Base exception for talkbridge."""


class ConfigurationError(TalkbridgeError, ValueError):
    """Raised when a product profile or setting is unusable."""


class BridgeError(TalkbridgeError):
    """Base exception for failures reported by the remote bridge."""


class BridgeOperationError(BridgeError):
    """Raised when a remote call fails because the target went away mid-call."""


class SessionClosedError(BridgeError):
    """Raised when a released automation session is used."""

    def __init__(self, owner_pid: int) -> None:
        super().__init__(f"Automation session for pid {owner_pid} is already closed")
        self.owner_pid = owner_pid

