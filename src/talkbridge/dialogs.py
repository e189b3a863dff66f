"""Watch for modal windows raised by remote actions and drive the expected ones."""

from __future__ import annotations

import time
from collections.abc import Callable

from loguru import logger

from talkbridge.remote import CONTROL_NAMES, ActionInvoker, ControlKind, ControlLocator, RemoteHandle, RemoteWindow
from talkbridge.result import Result
from talkbridge.session import AutomationSession
from talkbridge.state import WindowSignal
from talkbridge.waiter import AsyncActionWaiter, PendingAsyncAction


def is_enabled(handle: RemoteHandle) -> bool:
    return bool(handle.read("is_enabled"))


def missing_control(kind: ControlKind) -> str:
    return f"The target's {CONTROL_NAMES[kind]} was not found."


class DialogWatcher:
    """Observe top-level windows of one session while an action is in flight."""

    def __init__(
        self,
        session: Callable[[], AutomationSession],
        locator: ControlLocator,
        invoker: ActionInvoker,
        classify: Callable[[str | None], WindowSignal],
        waiter: AsyncActionWaiter | None = None,
    ) -> None:
        self._session = session
        self.locator = locator
        self.invoker = invoker
        self.classify = classify
        self.waiter = waiter or AsyncActionWaiter()

    def windows(self) -> list[RemoteWindow]:
        return list(self._session().top_level_windows())

    def snapshot(self) -> set[int]:
        return {window.window_id for window in self.windows()}

    def top_title(self) -> str | None:
        windows = self.windows()
        return windows[0].title if windows else None

    def find(self, title: str) -> RemoteWindow | None:
        return next((window for window in self.windows() if window.title == title), None)

    def classify_window(self, window: RemoteWindow) -> WindowSignal:
        return self.classify(window.title)

    def click(self, handle: RemoteHandle, token: PendingAsyncAction | None = None) -> None:
        self.invoker.invoke(handle, "click", (), token)

    def _new_modal(self, owner: RemoteWindow | None, baseline: set[int]) -> RemoteWindow | None:
        for window in self.windows():
            if window.window_id in baseline:
                continue
            if owner is None:
                return window
            window_owner = window.owner
            if window_owner is not None and window_owner.window_id == owner.window_id:
                return window
        return None

    def wait_for_next_modal(
        self,
        owner: RemoteWindow | None,
        token: PendingAsyncAction,
        baseline: set[int] | None = None,
    ) -> RemoteWindow | None:
        """Wait for a new window owned by ``owner`` while ``token`` is pending.

        Returns ``None`` when the action completes (or its deadline passes)
        without raising a modal. ``baseline`` holds the window ids that
        existed before the action was dispatched.
        """
        if baseline is None:
            baseline = {owner.window_id} if owner is not None else set()
        while True:
            finished = token.is_completed or token.expired
            modal = self._new_modal(owner, baseline)
            if modal is not None:
                return modal
            if finished:
                return None
            time.sleep(self.waiter.poll_interval)

    def click_and_watch(
        self,
        handle: RemoteHandle,
        owner: RemoteWindow | None,
        timeout: float | None = None,
    ) -> tuple[PendingAsyncAction, RemoteWindow | None]:
        """Click ``handle`` and return its token with the modal it raised, if any."""
        baseline = self.snapshot()
        token = self.waiter.dispatch(lambda t: self.click(handle, t), timeout)
        return token, self.wait_for_next_modal(owner, token, baseline)

    def operate_file_dialog(self, dialog: RemoteWindow, path: str) -> Result[bool]:
        """Enter ``path`` into a file dialog and confirm it."""
        field = self.locator.locate(ControlKind.FILE_NAME_FIELD, dialog)
        button = self.locator.locate(ControlKind.FILE_DIALOG_CONFIRM, dialog)
        if field is None:
            return Result.fail(missing_control(ControlKind.FILE_NAME_FIELD), False)
        if button is None:
            return Result.fail(missing_control(ControlKind.FILE_DIALOG_CONFIRM), False)

        try:
            written = self.waiter.run(lambda t: self.invoker.invoke(field, "set_text", (path,), t))
        except Exception:
            logger.opt(exception=True).warning("writing the file path into the dialog failed")
            return Result.fail("Could not enter the file path into the dialog.", False)
        if not written:
            return Result.timeout("Entering the file path into the dialog timed out.", False)

        try:
            _, modal = self.click_and_watch(button, dialog)
        except Exception:
            logger.opt(exception=True).warning("confirming the file dialog failed")
            return Result.fail("Could not click the file dialog's save button.", False)
        if modal is not None:
            return Result.fail(f"Stopped because the target showed the {modal.title!r} dialog.", False)
        return Result.ok(True)

    def dismiss(self, window: RemoteWindow) -> bool:
        """Best-effort click of a dialog's OK button; failures are only logged."""
        try:
            button = self.locator.locate(ControlKind.DIALOG_CONFIRM, window)
            if button is None:
                logger.debug("no OK button on dialog {!r}", window.title)
                return False
            self.click(button)
        except Exception:
            logger.opt(exception=True).debug("dismissing dialog {!r} failed", window.title)
            return False
        return True
