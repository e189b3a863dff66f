"""Reconcile fire-and-forget remote actions with synchronous callers.

A remote action is dispatched together with a ``PendingAsyncAction`` token.
The bridge completes the token once the target has run the action. The calling
thread polls the token until it completes or its deadline passes. A timed-out
action is never cancelled; it is simply no longer awaited.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")

from talkbridge.config import get_settings


class PendingAsyncAction:
    """Completion flag, captured remote exception and deadline of one dispatch."""

    def __init__(self, timeout: float | None = None) -> None:
        self._done = threading.Event()
        self.exception: BaseException | None = None
        self.deadline: float | None = None if timeout is None or timeout < 0 else time.monotonic() + timeout

    def __repr__(self) -> str:
        return f"PendingAsyncAction(completed={self.is_completed}, expired={self.expired})"

    @property
    def is_completed(self) -> bool:
        return self._done.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def complete(self, exception: BaseException | None = None) -> None:
        """Mark the action as finished inside the target, optionally with its failure."""
        if exception is not None:
            self.exception = exception
        self._done.set()

    def raise_if_failed(self) -> None:
        if self.exception is not None:
            raise self.exception


def wait_until(
    getter: Callable[[], T],
    predicate: Callable[[T], bool] = bool,
    timeout: float | None = None,
    poll_interval: float | None = None,
) -> T:
    """Poll ``getter`` until ``predicate`` holds or ``timeout`` elapses.

    Returns the last value read. A negative timeout waits forever.
    """
    settings = get_settings()
    if timeout is None:
        timeout = settings.standard_timeout_seconds
    if poll_interval is None:
        poll_interval = settings.poll_interval_seconds

    start = time.monotonic()
    value = getter()
    while not predicate(value):
        if timeout >= 0 and time.monotonic() - start >= timeout:
            break
        time.sleep(poll_interval)
        value = getter()
    return value


def text_timeout(text: str, baseline: float | None = None, unit: int | None = None) -> float:
    """Timeout for writing ``text``: one extra millisecond per ``unit`` characters."""
    settings = get_settings()
    if baseline is None:
        baseline = settings.standard_timeout_seconds
    if unit is None:
        unit = settings.text_timeout_unit_chars
    return baseline + (len(text) / unit) / 1000


class AsyncActionWaiter:
    """Dispatch remote actions and wait for their completion under a timeout."""

    def __init__(self, timeout: float | None = None, poll_interval: float | None = None) -> None:
        settings = get_settings()
        self.timeout = settings.standard_timeout_seconds if timeout is None else timeout
        self.poll_interval = settings.poll_interval_seconds if poll_interval is None else poll_interval

    def dispatch(
        self,
        action: Callable[[PendingAsyncAction], Any],
        timeout: float | None = None,
    ) -> PendingAsyncAction:
        """Start ``action`` and return its token without waiting."""
        token = PendingAsyncAction(self.timeout if timeout is None else timeout)
        action(token)
        return token

    def wait(self, token: PendingAsyncAction, timeout: float | None = None) -> bool:
        """Wait for ``token``; raise the captured remote exception if one was recorded."""
        if timeout is None:
            remaining = token.remaining()
            timeout = -1 if remaining is None else remaining
        completed = wait_until(
            lambda: token.is_completed,
            timeout=timeout,
            poll_interval=self.poll_interval,
        )
        if not completed:
            return False
        token.raise_if_failed()
        return True

    def run(self, action: Callable[[PendingAsyncAction], Any], timeout: float | None = None) -> bool:
        """Dispatch ``action`` and wait for it.

        Returns ``False`` when the deadline passes first. The remote action may
        still be running in that case.
        """
        token = self.dispatch(action, timeout)
        return self.wait(token)
