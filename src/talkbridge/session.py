"""Attachment of the remote bridge to a live target process."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from talkbridge.errors import SessionClosedError
from talkbridge.process import ProcessHandle
from talkbridge.remote import AutomationBridge, BridgeFactory, RemoteWindow


class AutomationSession:
    """A live bridge into one process, bound to that process's pid."""

    def __init__(self, bridge: AutomationBridge, owner_pid: int) -> None:
        self.bridge = bridge
        self.owner_pid = owner_pid
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"AutomationSession(owner_pid={self.owner_pid}, {state})"

    @property
    def closed(self) -> bool:
        return self._closed

    def top_level_windows(self) -> Sequence[RemoteWindow]:
        if self._closed:
            raise SessionClosedError(self.owner_pid)
        return self.bridge.top_level_windows()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.bridge.close()
        except Exception:
            logger.opt(exception=True).debug("bridge release failed for pid {}", self.owner_pid)

    def __enter__(self) -> AutomationSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SessionHolder:
    """Owns at most one session and keeps it matched to the current process."""

    def __init__(self, factory: BridgeFactory) -> None:
        self._factory = factory
        self._session: AutomationSession | None = None

    @property
    def current(self) -> AutomationSession | None:
        return self._session

    def open(self, process: ProcessHandle) -> AutomationSession:
        """Create a session for ``process`` without installing it."""
        bridge = self._factory(process)
        return AutomationSession(bridge, process.pid)

    def session_for(self, process: ProcessHandle) -> tuple[AutomationSession, bool]:
        """Return a session usable for ``process`` and whether it is the held one.

        A non-held session is temporary and must be closed by the caller.
        """
        session = self._session
        if session is not None and not session.closed and session.owner_pid == process.pid:
            return session, True
        return self.open(process), False

    def sync(self, process: ProcessHandle | None) -> bool:
        """Match the held session to ``process``; return True when it changed."""
        session = self._session
        wanted_pid = None if process is None else process.pid
        if session is not None and not session.closed and session.owner_pid == wanted_pid:
            return False
        if session is None and process is None:
            return False

        self.release()
        if process is not None:
            self._session = self.open(process)
            logger.debug("attached automation session to pid {}", process.pid)
        return True

    def release(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            logger.debug("releasing automation session for pid {}", session.owner_pid)
            session.close()
