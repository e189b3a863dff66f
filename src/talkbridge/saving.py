"""Audio export saga and the filesystem checks around it."""

from __future__ import annotations

import os
import time
from pathlib import Path

from loguru import logger

from talkbridge.config import Settings, get_settings
from talkbridge.dialogs import DialogWatcher, is_enabled, missing_control
from talkbridge.profile import ProductProfile
from talkbridge.remote import ControlKind, ControlLocator, RemoteHandle, RemoteWindow
from talkbridge.result import Result, exception_message
from talkbridge.waiter import PendingAsyncAction, wait_until


def with_extension(path: str, extension: str) -> str:
    if Path(path).suffix.lower() != extension.lower():
        return path + extension
    return path


def to_sequential(path: str, index: int) -> str:
    """``dir/name.wav`` -> ``dir/name-<index>.wav``, the editors' numbered naming."""
    if index < 0:
        raise ValueError("index must be >= 0")
    target = Path(path)
    return str(target.with_name(f"{target.stem}-{index}{target.suffix}"))


def ensure_save_directory(directory: str | os.PathLike[str]) -> Result[bool]:
    """Create ``directory`` if needed and prove it is writable."""
    if not str(directory).strip():
        return Result.fail("The destination folder path is invalid.", False)

    folder = Path(directory)
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.opt(exception=True).warning("cannot create save directory {}", folder)
        return Result.fail("Could not create the destination folder.", False)

    index = 0
    probe = folder / str(index)
    while probe.exists():
        index += 1
        probe = folder / str(index)

    try:
        probe.write_bytes(b"\0")
    except OSError:
        logger.opt(exception=True).warning("save directory {} is not writable", folder)
        return Result.fail("The destination folder is not writable.", False)
    finally:
        try:
            probe.unlink(missing_ok=True)
        except OSError:
            logger.debug("could not remove write probe {}", probe)
    return Result.ok(True)


class FileSaveSaga:
    """Drive one export: save control, option window, file dialog, completion, verification."""

    def __init__(
        self,
        profile: ProductProfile,
        watcher: DialogWatcher,
        settings: Settings | None = None,
    ) -> None:
        self.profile = profile
        self.watcher = watcher
        self.settings = settings or get_settings()

    @property
    def locator(self) -> ControlLocator:
        return self.watcher.locator

    def run(self, main_window: RemoteWindow, path: str) -> Result[str]:
        audio_path = with_extension(path, self.profile.audio_extension)
        try:
            opened = self._open_file_dialog(main_window)
            if opened.value is None:
                return opened.with_value(None)
            token, dialog = opened.value

            entered = self.watcher.operate_file_dialog(dialog, audio_path)
            if not entered.value:
                return entered.with_value(None)

            closed = self._wait_file_dialog_closed()
            if not closed.value:
                return closed.with_value(None)

            finished = self._wait_saving(main_window, token)
            if not finished.value:
                return finished.with_value(None)

            saved = self._check_saved(audio_path)
            if not saved.value:
                alternate = to_sequential(audio_path, 0)
                saved = self._check_saved(alternate)
                if not saved.value:
                    return saved.with_value(None)
                audio_path = alternate
        finally:
            self._restore_focus(main_window)

        return Result.ok(audio_path)

    def _open_file_dialog(
        self, main_window: RemoteWindow
    ) -> Result[tuple[PendingAsyncAction, RemoteWindow]]:
        button = self.locator.locate(ControlKind.SAVE_BUTTON, main_window)
        if button is None:
            return Result.fail(missing_control(ControlKind.SAVE_BUTTON))

        try:
            if not is_enabled(button):
                return Result.fail("The target's save audio button cannot be clicked right now.")
            token, modal = self.watcher.click_and_watch(button, main_window, self.settings.save_timeout_seconds)
            if modal is None:
                if token.is_completed:
                    return Result.fail("Cannot export empty content; the target finished without a save dialog.")
                return Result.timeout("Waiting for the target's save dialog timed out.")

            if self.profile.save_options_title and modal.title == self.profile.save_options_title:
                confirmed = self._confirm_options(modal)
                if confirmed.value is None:
                    return confirmed.with_value(None)
                modal = confirmed.value

            if modal.title != self.profile.save_dialog_title:
                logger.warning("unexpected {} dialog {!r} during export", self.watcher.classify_window(modal), modal.title)
                return Result.fail(f"The target showed the {modal.title!r} dialog.")
        except Exception:
            logger.opt(exception=True).warning("opening the save dialog failed")
            return Result.fail("Could not click the target's save audio button.")

        return Result.ok((token, modal))

    def _confirm_options(self, options: RemoteWindow) -> Result[RemoteWindow]:
        button = self.locator.locate(ControlKind.SAVE_OPTIONS_CONFIRM, options)
        if button is None:
            return Result.fail(missing_control(ControlKind.SAVE_OPTIONS_CONFIRM))
        if not is_enabled(button):
            return Result.fail("The save options OK button cannot be clicked right now.")

        token, modal = self.watcher.click_and_watch(button, options, self.settings.save_timeout_seconds)
        if modal is None:
            if token.is_completed:
                return Result.fail("The target's save file dialog did not appear.")
            return Result.timeout("Waiting for the target's save file dialog timed out.")
        return Result.ok(modal)

    def _wait_file_dialog_closed(self) -> Result[bool]:
        try:
            done = wait_until(
                lambda: self.watcher.top_title() != self.profile.save_dialog_title,
                timeout=self.settings.standard_timeout_seconds,
                poll_interval=self.settings.poll_interval_seconds,
            )
        except Exception:
            logger.opt(exception=True).warning("waiting for the file dialog to close failed")
            return Result.fail("Failed while waiting for the file dialog to close.", False)
        if not done:
            return Result.timeout("Waiting for the file dialog to close timed out.", False)
        return Result.ok(True)

    def _busy(self, main_window: RemoteWindow) -> bool:
        kind = self.profile.busy_indicator
        if kind is None:
            return False
        try:
            indicator = self.locator.locate(kind, main_window)
            return indicator is not None and bool(indicator.read("is_busy"))
        except Exception:
            logger.opt(exception=True).debug("busy indicator read failed")
            return False

    def _find_complete_dialog(self) -> RemoteWindow | None:
        title = self.profile.save_complete_title
        if not title:
            return None
        return self.watcher.find(title)

    def _wait_saving(self, main_window: RemoteWindow, token: PendingAsyncAction) -> Result[bool]:
        deadline = time.monotonic() + self.settings.save_timeout_seconds
        poll = self.settings.poll_interval_seconds
        try:
            while True:
                dialog = self._find_complete_dialog()
                if dialog is not None:
                    self.watcher.dismiss(dialog)
                    return Result.ok(True)
                if token.is_completed and not self._busy(main_window):
                    break
                if time.monotonic() >= deadline:
                    return Result.timeout("Waiting for the export to finish timed out.", False)
                time.sleep(poll)

            if token.exception is not None:
                return Result.fail(f"The export failed: {exception_message(token.exception)}", False)

            dialog = wait_until(
                self._find_complete_dialog,
                lambda found: found is not None,
                timeout=self.settings.standard_timeout_seconds if self.profile.save_complete_title else 0,
                poll_interval=poll,
            )
            if dialog is not None:
                self.watcher.dismiss(dialog)
        except Exception:
            logger.opt(exception=True).warning("waiting for the export to finish failed")
            return Result.fail("Failed while waiting for the export to finish.", False)
        return Result.ok(True)

    def _check_saved(self, path: str) -> Result[bool]:
        try:
            if not Path(path).is_file():
                return Result.fail("Could not confirm that the audio file was saved.", False)
            extension = self.profile.sidecar_extension
            if extension:
                sidecar = Path(path).with_suffix(extension)
                wait_until(sidecar.exists, timeout=self.settings.sidecar_wait_seconds)
        except OSError:
            logger.opt(exception=True).warning("checking saved file {} failed", path)
            return Result.fail("Failed while checking the saved audio file.", False)
        return Result.ok(True)

    def _restore_focus(self, main_window: RemoteWindow) -> None:
        try:
            anchor: RemoteHandle | None = self.locator.locate(ControlKind.FOCUS_ANCHOR, main_window)
            if anchor is not None:
                self.watcher.invoker.invoke(anchor, "focus")
        except Exception:
            logger.opt(exception=True).debug("restoring focus after export failed")
