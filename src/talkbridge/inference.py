"""Infer a target's operational state from window signals and live controls."""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from talkbridge.errors import BridgeOperationError
from talkbridge.process import ProcessHandle
from talkbridge.remote import RemoteWindow
from talkbridge.result import Result, exception_message
from talkbridge.session import SessionHolder
from talkbridge.state import OperationalState, WindowSignal, most_severe, resolve_signal

TitleClassifier = Callable[[str | None], WindowSignal]
DeepCheck = Callable[[RemoteWindow, OperationalState], Result[OperationalState]]


class StateInferenceEngine:
    """Compute the current state of one target process.

    The cheap local check on the main window title runs first. Only when the
    title says "main window", or no title is known at all, is the bridge
    consulted, and then every top-level window is classified so that a modal
    dialog dominates an idle main window.
    The engine performs no waits and holds no state between calls other than
    the session it borrows from ``sessions``.
    """

    def __init__(self, classify: TitleClassifier, deep_check: DeepCheck, sessions: SessionHolder) -> None:
        self.classify = classify
        self.deep_check = deep_check
        self.sessions = sessions

    def infer(self, process: ProcessHandle | None, previous: OperationalState) -> Result[OperationalState]:
        if process is None or process.has_exited:
            return Result.ok(OperationalState.NONE)

        try:
            title = process.main_window_title
            if title is not None:
                state = resolve_signal(self.classify(title), previous)
                if state is not None:
                    return Result.ok(state)
            return self._infer_from_windows(process, previous)
        except BridgeOperationError as exc:
            logger.debug("bridge call failed while inferring pid {}: {}", process.pid, exc)
            return Result(OperationalState.NONE, exception_message(exc))
        except Exception as exc:
            logger.opt(exception=True).debug("state inference failed for pid {}", process.pid)
            state = OperationalState.NONE if process.has_exited else OperationalState.FAIL
            return Result(state, exception_message(exc))

    def _infer_from_windows(self, process: ProcessHandle, previous: OperationalState) -> Result[OperationalState]:
        session, held = self.sessions.session_for(process)
        try:
            windows = list(session.top_level_windows())
            if not windows:
                return Result.ok(OperationalState.NONE)

            states = [resolve_signal(self.classify(window.title), previous) for window in windows]
            decided = most_severe(state for state in states if state is not None)
            if decided is not None:
                return Result.ok(decided)

            if len(windows) != 1:
                logger.debug("expected a single main window for pid {}, found {}", process.pid, len(windows))
            return self.deep_check(windows[0], previous)
        finally:
            if not held:
                session.close()
