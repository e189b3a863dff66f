"""Generic talker driven by a product profile and a control locator."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from decimal import Decimal

from loguru import logger

from talkbridge.config import Settings
from talkbridge.dialogs import DialogWatcher, is_enabled, missing_control
from talkbridge.errors import BridgeError
from talkbridge.process import ProcessHandle
from talkbridge.profile import ProductProfile
from talkbridge.remote import (
    ActionInvoker,
    BridgeFactory,
    ControlKind,
    ControlLocator,
    RemoteHandle,
    RemoteWindow,
    TitleProbe,
)
from talkbridge.result import Result, exception_message
from talkbridge.saving import FileSaveSaga
from talkbridge.session import AutomationSession
from talkbridge.state import OperationalState, WindowSignal, resolve_signal
from talkbridge.talker import TalkerFacade
from talkbridge.waiter import AsyncActionWaiter, text_timeout


class LocatorTalker(TalkerFacade):
    """Talker for any editor whose controls a ``ControlLocator`` can resolve.

    Product differences are data (``ProductProfile``) plus the locator, so a
    new editor needs no subclass.
    """

    def __init__(
        self,
        profile: ProductProfile,
        bridge_factory: BridgeFactory,
        locator: ControlLocator,
        invoker: ActionInvoker,
        *,
        title_probe: TitleProbe | None = None,
        identity: Callable[[ProcessHandle], bool] | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(
            profile,
            bridge_factory,
            title_probe=title_probe,
            identity=identity,
            settings=settings,
        )
        self.locator = locator
        self.invoker = invoker
        self.waiter = AsyncActionWaiter(
            self.settings.standard_timeout_seconds,
            self.settings.poll_interval_seconds,
        )
        self.watcher = DialogWatcher(self._require_session, locator, invoker, self.classify_title, self.waiter)
        self.saga = FileSaveSaga(profile, self.watcher, self.settings)

    def _require_session(self) -> AutomationSession:
        session = self.session
        if session is None:
            raise BridgeError(f"{self.talker_name} has no automation session attached")
        return session

    def main_window(self) -> RemoteWindow | None:
        for window in self._require_session().top_level_windows():
            if self.classify_title(window.title) is WindowSignal.MAIN:
                return window
        return None

    def _control(self, kind: ControlKind, context: object = None) -> tuple[RemoteHandle | None, str | None]:
        """Locate ``kind`` inside the main window, or return why it is unavailable."""
        window = self.main_window() if context is None else context
        if window is None:
            return None, "The target's main window was not found."
        handle = self.locator.locate(kind, window)
        if handle is None:
            return None, missing_control(kind)
        return handle, None

    def check_main_window(self, window: RemoteWindow, previous: OperationalState) -> Result[OperationalState]:
        busy_kind = self.profile.busy_indicator
        if busy_kind is not None:
            indicator = self.locator.locate(busy_kind, window)
            if indicator is not None and indicator.read("is_busy"):
                return Result.ok(OperationalState.FILE_SAVING)

        control = self.locator.locate(self.profile.idle_control, window)
        if control is None:
            state = resolve_signal(WindowSignal.STARTUP_OR_CLEANUP, previous)
            return Result(state, missing_control(self.profile.idle_control))

        if not is_enabled(control):
            return Result.ok(OperationalState.SPEAKING)
        if self.locator.locate(ControlKind.TEXT_BOX, window) is None:
            return Result.ok(OperationalState.SURFACE_HIDDEN)
        return Result.ok(OperationalState.IDLE)

    # -- text

    def get_text_impl(self) -> Result[str]:
        box, error = self._control(ControlKind.TEXT_BOX)
        if box is None:
            return Result.fail(error)
        return Result.ok(str(box.read("text") or ""))

    def set_text_impl(self, text: str) -> Result[bool]:
        box, error = self._control(ControlKind.TEXT_BOX)
        if box is None:
            return Result.fail(error, False)
        if not self.waiter.run(lambda t: self.invoker.invoke(box, "set_text", (text,), t), text_timeout(text)):
            return Result.timeout("Writing the text timed out.", False)
        return Result.ok(True)

    # -- parameters

    def get_parameters_impl(self) -> Result[dict[str, Decimal]]:
        values: dict[str, Decimal] = {}
        for descriptor in self.catalog:
            slider = self.locator.locate(ControlKind.PARAMETER_SLIDER, descriptor.id)
            if slider is None:
                return Result.fail(f"{missing_control(ControlKind.PARAMETER_SLIDER)} ({descriptor.display_name})")
            values[descriptor.id] = Decimal(str(slider.read("value")))
        return Result.ok(values)

    def set_parameters_impl(self, parameters: Mapping[str, Decimal]) -> Result[dict[str, Result[bool]]]:
        outcome: dict[str, Result[bool]] = {}
        for parameter_id, value in parameters.items():
            slider = self.locator.locate(ControlKind.PARAMETER_SLIDER, parameter_id)
            if slider is None:
                outcome[parameter_id] = Result.fail(missing_control(ControlKind.PARAMETER_SLIDER), False)
                continue
            try:
                written = self.waiter.run(lambda t, s=slider, v=value: self.invoker.invoke(s, "set_value", (v,), t))
            except Exception as exc:
                logger.opt(exception=True).warning("setting parameter {} failed", parameter_id)
                outcome[parameter_id] = Result.fail(exception_message(exc), False)
                continue
            if written:
                outcome[parameter_id] = Result.ok(True)
            else:
                outcome[parameter_id] = Result.timeout(f"Setting {parameter_id} timed out.", False)
        return Result.ok(outcome)

    # -- characters

    def get_available_characters_impl(self) -> Result[set[str]]:
        characters, error = self._control(ControlKind.CHARACTER_LIST)
        if characters is None:
            return Result.fail(error)
        return Result.ok({str(item) for item in characters.read("items") or ()})

    def get_character_impl(self) -> Result[str]:
        characters, error = self._control(ControlKind.CHARACTER_LIST)
        if characters is None:
            return Result.fail(error)
        return Result.ok(str(characters.read("selected") or ""))

    def set_character_impl(self, character: str) -> Result[bool]:
        characters, error = self._control(ControlKind.CHARACTER_LIST)
        if characters is None:
            return Result.fail(error, False)
        if character not in {str(item) for item in characters.read("items") or ()}:
            return Result.fail(f"The character {character!r} is not available.", False)
        if not self.waiter.run(lambda t: self.invoker.invoke(characters, "select", (character,), t)):
            return Result.timeout("Selecting the character timed out.", False)
        return Result.ok(True)

    # -- playback

    def speak_impl(self) -> Result[bool]:
        window = self.main_window()
        if window is None:
            return Result.fail("The target's main window was not found.", False)
        play = self.locator.locate(ControlKind.PLAY_BUTTON, window)
        if play is None:
            return Result.fail(missing_control(ControlKind.PLAY_BUTTON), False)

        head = self.locator.locate(ControlKind.HEAD_BUTTON, window)
        if head is not None:
            try:
                self.waiter.run(lambda t: self.watcher.click(head, t))
            except Exception:
                logger.opt(exception=True).debug("rewinding before playback failed")

        token, modal = self.watcher.click_and_watch(play, window)
        if modal is not None:
            return Result.fail(f"Playback stopped because the target showed the {modal.title!r} dialog.", False)
        if not token.is_completed:
            return Result.timeout("Starting playback timed out.", False)
        token.raise_if_failed()
        return Result.ok(True)

    def stop_impl(self) -> Result[bool]:
        stop, error = self._control(ControlKind.STOP_BUTTON)
        if stop is None:
            return Result.fail(error, False)
        if not self.waiter.run(lambda t: self.watcher.click(stop, t)):
            return Result.timeout("Stopping playback timed out.", False)
        return Result.ok(True)

    # -- export and exit

    def save_file_impl(self, path: str) -> Result[str]:
        window = self.main_window()
        if window is None:
            return Result.fail("The target's main window was not found.")
        return self.saga.run(window, path)

    def close_main_window(self, process: ProcessHandle) -> bool:
        with self._sessions.open(process) as session:
            windows = session.top_level_windows()
            main = next((w for w in windows if self.classify_title(w.title) is WindowSignal.MAIN), None)
            if main is None:
                return super().close_main_window(process)
            self.invoker.invoke(main, "close")
        return True
