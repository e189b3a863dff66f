"""Operational states of a driven target and the window signals they derive from."""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum


class OperationalState(StrEnum):
    """Lifecycle state of one target process as seen by a talker."""

    NONE = "none"
    FAIL = "fail"
    STARTUP = "startup"
    CLEANUP = "cleanup"
    IDLE = "idle"
    SURFACE_HIDDEN = "surface_hidden"
    SPEAKING = "speaking"
    FILE_SAVING = "file_saving"
    BLOCKED = "blocked"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def is_alive(self) -> bool:
        return self not in _NOT_ALIVE

    @property
    def can_operate(self) -> bool:
        return self in (OperationalState.IDLE, OperationalState.SPEAKING)


_SEVERITY: dict[OperationalState, int] = {
    OperationalState.NONE: -1,
    OperationalState.FAIL: -1,
    OperationalState.STARTUP: 0,
    OperationalState.CLEANUP: 1,
    OperationalState.IDLE: 2,
    OperationalState.SURFACE_HIDDEN: 3,
    OperationalState.SPEAKING: 4,
    OperationalState.FILE_SAVING: 5,
    OperationalState.BLOCKED: 6,
}

_NOT_ALIVE = frozenset(
    {
        OperationalState.NONE,
        OperationalState.FAIL,
        OperationalState.STARTUP,
        OperationalState.CLEANUP,
    }
)


class WindowSignal(StrEnum):
    """Classification of a top-level window title."""

    MAIN = "main"
    STARTUP_OR_CLEANUP = "startup_or_cleanup"
    FILE_SAVING = "file_saving"
    OTHER = "other"


def most_severe(states: Iterable[OperationalState]) -> OperationalState | None:
    """Return the highest-severity state, or ``None`` for an empty input."""
    return max(states, key=lambda state: state.severity, default=None)


def resolve_signal(signal: WindowSignal, previous: OperationalState) -> OperationalState | None:
    """Map a window signal to a state, using the previous state for ambiguous signals.

    The same "not a real window yet" signal means the target is still coming up
    the first time it is seen and going down afterwards. ``MAIN`` cannot be
    decided from the title alone and yields ``None``.
    """
    starting = previous in (OperationalState.NONE, OperationalState.STARTUP)
    match signal:
        case WindowSignal.MAIN:
            return None
        case WindowSignal.STARTUP_OR_CLEANUP:
            return OperationalState.STARTUP if starting else OperationalState.CLEANUP
        case WindowSignal.FILE_SAVING:
            return OperationalState.FILE_SAVING
        case WindowSignal.OTHER:
            return OperationalState.STARTUP if starting else OperationalState.BLOCKED
    return previous


_STATE_MESSAGES: dict[OperationalState, str] = {
    OperationalState.NONE: "The target is not running.",
    OperationalState.FAIL: "The target is in an invalid state.",
    OperationalState.STARTUP: "The target has not finished starting up.",
    OperationalState.CLEANUP: "The target is shutting down.",
    OperationalState.SURFACE_HIDDEN: "The target's editing surface is hidden.",
    OperationalState.SPEAKING: "Cannot do this while the target is speaking.",
    OperationalState.FILE_SAVING: "Cannot do this while the target is saving audio.",
    OperationalState.BLOCKED: "The target is not accepting operations.",
}


def state_error_message(state: OperationalState, state_message: str | None = None) -> str | None:
    """Message explaining why ``state`` rejects an operation, ``None`` when idle."""
    if state is OperationalState.IDLE:
        return None
    if state_message:
        return state_message
    return _STATE_MESSAGES.get(state, "The target is in an invalid state.")
