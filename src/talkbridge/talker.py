"""Abstract talker: lifecycle, serialization and the public operation surface."""

from __future__ import annotations

import os
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal
from pathlib import Path
from typing import TypeVar

import psutil
from loguru import logger

from talkbridge.config import Settings, get_settings
from talkbridge.inference import StateInferenceEngine
from talkbridge.parameters import ParameterCatalog, to_decimal_map
from talkbridge.process import ProcessDetector, ProcessHandle
from talkbridge.profile import ProductProfile
from talkbridge.remote import BridgeFactory, RemoteWindow, TitleProbe
from talkbridge.result import Result, exception_message
from talkbridge.saving import ensure_save_directory
from talkbridge.serializer import OperationSerializer
from talkbridge.session import AutomationSession, SessionHolder
from talkbridge.state import OperationalState, WindowSignal, state_error_message
from talkbridge.waiter import wait_until

T = TypeVar("T")

StateListener = Callable[[list[str]], None]
_NO_CHARACTERS = "Characters are not supported by this talker."

_EXIT_ALLOWED = frozenset(
    {
        OperationalState.STARTUP,
        OperationalState.CLEANUP,
        OperationalState.IDLE,
        OperationalState.SPEAKING,
    }
)


class TalkerFacade(ABC):
    """Uniform control surface over one running voice-synthesis editor.

    Every public operation takes the per-talker lock, checks the last inferred
    state, delegates to a product hook and turns any exception into a failure
    ``Result``. State listeners are always called after the lock is released,
    except for the ``FILE_SAVING`` transition published at the start of a
    save, during which re-entrant calls are refused instead of deadlocking.
    """

    def __init__(
        self,
        profile: ProductProfile,
        bridge_factory: BridgeFactory,
        *,
        title_probe: TitleProbe | None = None,
        identity: Callable[[ProcessHandle], bool] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.profile = profile
        self.settings = settings or get_settings()
        self.catalog: ParameterCatalog = profile.catalog()
        self._identity = identity
        self._detector = ProcessDetector(
            file_name=profile.process_file_name,
            product_name=profile.product_name,
            predicate=self.is_own_process,
            title_probe=title_probe,
        )
        self._serializer = OperationSerializer()
        self._sessions = SessionHolder(bridge_factory)
        self._engine = StateInferenceEngine(self.classify_title, self._deep_check, self._sessions)
        self._listeners: list[StateListener] = []
        self._state = OperationalState.NONE
        self._state_message: str | None = None
        self._process: ProcessHandle | None = None
        self._closed = False
        self._log = logger.bind(talker=profile.talker_name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.talker_name!r}, state={self._state.value})"

    # -- cached lifecycle fields, readable without the lock

    @property
    def talker_name(self) -> str:
        return self.profile.talker_name

    @property
    def state(self) -> OperationalState:
        return self._state

    @property
    def state_message(self) -> str | None:
        return self._state_message

    @property
    def is_alive(self) -> bool:
        return self._state.is_alive

    @property
    def can_operate(self) -> bool:
        return self._state.can_operate

    @property
    def process(self) -> ProcessHandle | None:
        return self._process

    @property
    def session(self) -> AutomationSession | None:
        return self._sessions.current

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def text_length_limit(self) -> int:
        return self.profile.text_length_limit

    # -- product hooks

    def classify_title(self, title: str | None) -> WindowSignal:
        return self.profile.classify_title(title)

    @abstractmethod
    def check_main_window(self, window: RemoteWindow, previous: OperationalState) -> Result[OperationalState]:
        """Decide the state from live controls when only the main window is open."""

    @abstractmethod
    def get_text_impl(self) -> Result[str]: ...

    @abstractmethod
    def set_text_impl(self, text: str) -> Result[bool]: ...

    @abstractmethod
    def get_parameters_impl(self) -> Result[dict[str, Decimal]]: ...

    @abstractmethod
    def set_parameters_impl(self, parameters: Mapping[str, Decimal]) -> Result[dict[str, Result[bool]]]: ...

    @abstractmethod
    def speak_impl(self) -> Result[bool]: ...

    @abstractmethod
    def stop_impl(self) -> Result[bool]: ...

    @abstractmethod
    def save_file_impl(self, path: str) -> Result[str]: ...

    def get_available_characters_impl(self) -> Result[set[str]]:
        return Result.fail(_NO_CHARACTERS)

    def get_character_impl(self) -> Result[str]:
        return Result.fail(_NO_CHARACTERS)

    def set_character_impl(self, character: str) -> Result[bool]:
        return Result.fail(_NO_CHARACTERS, False)

    def close_main_window(self, process: ProcessHandle) -> bool:
        """Ask the target to exit; the default terminates the process."""
        process.terminate()
        return True

    def is_own_process(self, process: ProcessHandle) -> bool:
        if process.has_exited:
            return False
        return self._identity is None or self._identity(process)

    # -- state bookkeeping

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for changed property names; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, changed: Iterable[str]) -> None:
        names = list(dict.fromkeys(changed))
        if not names:
            return
        for listener in list(self._listeners):
            try:
                listener(names)
            except Exception:
                self._log.exception("state listener failed")

    def _deep_check(self, window: RemoteWindow, previous: OperationalState) -> Result[OperationalState]:
        return self.check_main_window(window, previous)

    def _state_error(self, value: T | None = None) -> Result[T]:
        message = state_error_message(self._state, self._state_message)
        return Result(value, message or "The target is not ready.")

    def _apply(self, state: OperationalState, message: str | None, process: ProcessHandle | None) -> list[str]:
        old_state, old_alive, old_operate = self._state, self.is_alive, self.can_operate
        old_message, old_process = self._state_message, self._process

        self._state = state
        self._state_message = message
        self._process = None if state is OperationalState.NONE else process

        changed: list[str] = []
        if self._state is not old_state:
            changed.append("state")
            self._log.info("state {} -> {}", old_state.value, state.value)
        if self.is_alive != old_alive:
            changed.append("is_alive")
        if self.can_operate != old_operate:
            changed.append("can_operate")
        if self._state_message != old_message:
            changed.append("state_message")
        if self._process != old_process:
            changed.append("process")
        if self._sync_session():
            changed.append("session")
        return changed

    def _sync_session(self) -> bool:
        target = self._process if self.is_alive else None
        had_session = self._sessions.current is not None
        try:
            return self._sessions.sync(target)
        except Exception:
            self._log.opt(exception=True).warning("could not attach to pid {}", target.pid if target else None)
            self._sessions.release()
            return had_session

    def _update_by_process(self, process: ProcessHandle | None) -> list[str]:
        if self._closed:
            return self._apply(OperationalState.FAIL, "The talker has been closed.", None)
        result = self._engine.infer(process, self._state)
        return self._apply(result.value or OperationalState.FAIL, result.message, process)

    def _update_impl(self, processes: Iterable[psutil.Process] | None = None) -> list[str]:
        if self._closed:
            return self._update_by_process(None)
        found = self._detector.detect(processes)
        return self._update_by_process(found[0] if found else None)

    def _refresh(self) -> list[str]:
        return self._update_by_process(self._process)

    # -- lifecycle operations

    def update(self, processes: Iterable[psutil.Process] | None = None) -> None:
        """Run one state inference pass, scanning for the target process."""
        if self._serializer.notifying:
            return
        with self._serializer.exclusive():
            changed = self._update_impl(processes)
        self._notify(changed)

    def get_state(self) -> OperationalState:
        """Re-infer and return the current state."""
        if self._serializer.notifying:
            return self._state
        with self._serializer.exclusive():
            changed = self._refresh() if self._process is not None else self._update_impl()
            state = self._state
        self._notify(changed)
        return state

    def get_process_file_path(self) -> Result[str]:
        if self._state in (OperationalState.NONE, OperationalState.FAIL):
            return self._state_error()
        process = self._process
        path = process.executable_path if process is not None else None
        if path is None:
            return Result.fail("Could not read the target's executable path.")
        return Result.ok(path)

    def _responsive(self, handle: ProcessHandle) -> bool:
        """True once ``handle`` has exited or shows any window to infer from."""
        if handle.has_exited:
            return True
        return self._engine.infer(handle, OperationalState.NONE).value is not OperationalState.NONE

    def run_process(self, executable: str | os.PathLike[str]) -> Result[bool]:
        """Start the target executable unless it is already running."""
        if self._serializer.notifying:
            return Result.ok(True, "The target is already running.")

        changed: list[str] = []
        with self._serializer.exclusive():
            if self._state is OperationalState.FAIL:
                return self._state_error(False)
            if self._state is not OperationalState.NONE:
                return Result.ok(True, "The target is already running.")
            if not str(executable).strip():
                return Result.fail("The executable path is invalid.", False)
            if not Path(executable).is_file():
                return Result.fail("The executable does not exist.", False)

            try:
                launched = subprocess.Popen([os.fspath(executable)])
                handle = self._detector.wrap(psutil.Process(launched.pid))
                started = wait_until(
                    lambda: self._responsive(handle),
                    timeout=self.settings.standard_timeout_seconds,
                )
                if handle.has_exited:
                    return Result.fail("The target exited right after starting.", False)
                if not started:
                    self._log.debug("pid {} shows no main window yet", handle.pid)
                if not self.is_own_process(handle):
                    handle.terminate()
                    return Result.fail("The started program is not the target product.", False)
            except (OSError, psutil.Error) as exc:
                self._log.opt(exception=True).warning("starting {} failed", executable)
                return Result.fail(exception_message(exc), False)

            changed = self._update_impl()
            match self._state:
                case OperationalState.NONE:
                    result = Result.fail("Could not bring the target up.", False)
                case OperationalState.CLEANUP:
                    result = Result.fail("Another instance may already be running with elevated rights.", False)
                case OperationalState.FAIL:
                    result = self._state_error(False)
                case _:
                    result = Result.ok(True)
        self._notify(changed)
        return result

    def _check_process_exited(self, process: ProcessHandle) -> bool | None:
        """True once gone, None when a modal holds the exit, False while still running."""
        if process.wait_for_exit(0):
            return True
        state = self._engine.infer(process, self._state).value
        if state is OperationalState.NONE:
            return True
        if state in (OperationalState.BLOCKED, OperationalState.FILE_SAVING):
            return None
        return False

    def exit_process(self) -> Result[bool | None]:
        """Ask the target to exit; ``None`` means the target put the exit on hold."""
        if self._serializer.notifying:
            return self._state_error(False)

        with self._serializer.exclusive():
            if self._state is OperationalState.NONE:
                return Result.ok(True, "The target has already exited.")
            if self._state not in _EXIT_ALLOWED:
                return self._state_error(False)

            process = self._process
            try:
                if process is not None and not process.has_exited:
                    self._sessions.release()
                    if self._state is not OperationalState.CLEANUP and not self.close_main_window(process):
                        return Result.fail("Could not ask the target to exit.", False)
                    done = wait_until(
                        lambda: self._check_process_exited(process),
                        lambda exited: exited is not False,
                    )
                    if done is False:
                        return Result.timeout("The target did not finish exiting.", False)
            except Exception as exc:
                self._log.opt(exception=True).warning("exiting the target failed")
                return Result.fail(exception_message(exc), False)

            changed = self._update_by_process(process) if process is not None else self._update_impl()
            match self._state:
                case OperationalState.FAIL:
                    result: Result[bool | None] = self._state_error(False)
                case OperationalState.BLOCKED | OperationalState.FILE_SAVING:
                    result = Result(None, "The target put the exit on hold.")
                case _:
                    result = Result.ok(True)
        self._notify(changed)
        return result

    # -- serialized operations

    def _operate(
        self,
        failure_value: T | None,
        impl: Callable[[], Result[T]],
        *,
        refresh: bool = False,
    ) -> Result[T]:
        if self._serializer.notifying:
            return self._state_error(failure_value)

        changed: list[str] = []
        with self._serializer.exclusive():
            if not self.can_operate:
                return self._state_error(failure_value)
            try:
                result = impl()
            except Exception as exc:
                self._log.opt(exception=True).warning("operation failed")
                result = Result.fail(exception_message(exc), failure_value)
            if refresh:
                changed = self._refresh()
        self._notify(changed)
        return result

    def get_text(self) -> Result[str]:
        return self._operate(None, self.get_text_impl)

    def set_text(self, text: str | None) -> Result[bool]:
        value = text or ""
        if len(value) > self.text_length_limit:
            value = value[: self.text_length_limit]
        return self._operate(False, lambda: self.set_text_impl(value))

    def get_parameters(self) -> Result[dict[str, Decimal]]:
        return self._operate(None, self.get_parameters_impl)

    def set_parameters(
        self, parameters: Mapping[str, Decimal | float | int | str] | None
    ) -> Result[dict[str, Result[bool]]]:
        """Set several parameters; each id gets its own result.

        Unknown ids and out-of-range values fail before anything is written.
        """

        def run() -> Result[dict[str, Result[bool]]]:
            values = to_decimal_map(parameters or {})
            outcome: dict[str, Result[bool]] = {}
            accepted: dict[str, Decimal] = {}
            for parameter_id, value in values.items():
                descriptor = self.catalog.get(parameter_id)
                if descriptor is None:
                    outcome[parameter_id] = Result.fail(f"Unknown parameter {parameter_id!r}.", False)
                    continue
                checked = descriptor.check(value)
                if checked.value:
                    accepted[parameter_id] = value
                else:
                    outcome[parameter_id] = checked
            if accepted:
                written = self.set_parameters_impl(accepted)
                if written.value is None:
                    return written
                outcome.update(written.value)
            return Result.ok({parameter_id: outcome[parameter_id] for parameter_id in values if parameter_id in outcome})

        return self._operate(None, run)

    def get_available_characters(self) -> Result[set[str]]:
        if not self.profile.has_characters:
            return Result.fail(_NO_CHARACTERS)
        return self._operate(None, self.get_available_characters_impl)

    def get_character(self) -> Result[str]:
        if not self.profile.has_characters:
            return Result.fail(_NO_CHARACTERS)
        return self._operate(None, self.get_character_impl)

    def set_character(self, character: str | None) -> Result[bool]:
        if not self.profile.has_characters:
            return Result.fail(_NO_CHARACTERS, False)
        return self._operate(False, lambda: self.set_character_impl(character or ""))

    def speak(self) -> Result[bool]:
        def run() -> Result[bool]:
            if self._state is OperationalState.SPEAKING:
                stopped = self.stop_impl()
                if not stopped.value:
                    return stopped
            return self.speak_impl()

        return self._operate(False, run, refresh=True)

    def stop(self) -> Result[bool]:
        if self._state is OperationalState.IDLE and not self._serializer.notifying:
            return Result.ok(True, "Already stopped.")
        return self._operate(False, self.stop_impl, refresh=True)

    def _settle_after_stop(self, changed: list[str]) -> None:
        def refreshed() -> OperationalState:
            changed.extend(self._refresh())
            return self._state

        wait_until(refreshed, lambda state: state is not OperationalState.SPEAKING)

    def _save_file_locked(self, full_path: str, changed: list[str]) -> Result[str]:
        if self._state is OperationalState.SPEAKING:
            stopped = self.stop_impl()
            if not stopped.value:
                return stopped.with_value(None)
            self._settle_after_stop(changed)
        if self._state is not OperationalState.IDLE:
            return self._state_error()

        if not self.profile.can_save_blank_text:
            text = self.get_text_impl()
            if text.value is None:
                return text
            if not text.value.strip():
                return Result.fail("Cannot export blank text.")

        saving = self._apply(OperationalState.FILE_SAVING, None, self._process)
        with self._serializer.notifying_scope():
            self._notify(saving)

        directory = ensure_save_directory(os.path.dirname(full_path))
        if not directory.value:
            return directory.with_value(None)
        return self.save_file_impl(full_path)

    def save_file(self, path: str | os.PathLike[str]) -> Result[str]:
        """Export the current text as audio and return the path actually written."""
        if self._serializer.notifying:
            return self._state_error()

        changed: list[str] = []
        with self._serializer.exclusive():
            if not self.can_operate:
                return self._state_error()
            if not str(path).strip():
                return Result.fail("The destination file path is invalid.")
            try:
                full_path = os.path.abspath(os.fspath(path))
            except (TypeError, ValueError) as exc:
                return Result.fail(f"The destination file path is invalid: {exception_message(exc)}")

            try:
                result = self._save_file_locked(full_path, changed)
            except Exception as exc:
                self._log.opt(exception=True).warning("export to {} failed", full_path)
                result = Result.fail(exception_message(exc))
            changed.extend(self._refresh())
        self._notify(changed)
        return result

    # -- resource management

    def close(self) -> None:
        """Release the automation session; the talker cannot operate afterwards.

        Called from a listener while a save is being announced, the talker is
        only marked closed; the save in progress releases the session when it
        re-infers its state.
        """
        if self._serializer.notifying:
            self._closed = True
            return
        with self._serializer.exclusive():
            if self._closed:
                return
            self._closed = True
            self._sessions.release()
            changed = self._apply(OperationalState.FAIL, "The talker has been closed.", None)
        self._notify(changed)

    def __enter__(self) -> TalkerFacade:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
