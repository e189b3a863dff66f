from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import psutil
import pytest

from talkbridge.config import get_settings
from talkbridge.generic import LocatorTalker
from talkbridge.parameters import ParameterDescriptor
from talkbridge.profile import ProductProfile
from talkbridge.remote import ControlKind

MAIN_TITLE = "FakeVoice - untitled"
SAVE_DIALOG_TITLE = "Save Audio"
SAVE_COMPLETE_TITLE = "Export Complete"
SAVE_OPTIONS_TITLE = "Audio Options"
SAVE_PROGRESS_TITLE = "Exporting"

_window_ids = itertools.count(1)
_pids = itertools.count(40000)


class FakeControl:
    """In-memory remote handle; ``on`` maps an action name to a handler."""

    def __init__(self, **props: Any) -> None:
        self.props: dict[str, Any] = {"is_enabled": True, **props}
        self.on: dict[str, Callable[..., bool | None]] = {}

    def read(self, name: str) -> Any:
        return self.props.get(name)

    def write(self, name: str, value: Any) -> None:
        self.props[name] = value

    def children(self) -> list[FakeControl]:
        return []


class FakeWindow(FakeControl):
    def __init__(self, title: str, owner: FakeWindow | None = None) -> None:
        super().__init__()
        self.window_id = next(_window_ids)
        self.title = title
        self.owner = owner


class FakeEditor:
    """A scripted editor: ``windows[0]`` is the topmost window."""

    def __init__(self) -> None:
        self.main = FakeWindow(MAIN_TITLE)
        self.windows: list[FakeWindow] = [self.main]
        self.main_title: str | None = MAIN_TITLE
        self.controls: dict[ControlKind, FakeControl] = {
            ControlKind.TEXT_BOX: FakeControl(text=""),
            ControlKind.PLAY_BUTTON: FakeControl(),
            ControlKind.STOP_BUTTON: FakeControl(),
            ControlKind.HEAD_BUTTON: FakeControl(),
            ControlKind.SAVE_BUTTON: FakeControl(),
            ControlKind.FOCUS_ANCHOR: FakeControl(),
            ControlKind.CHARACTER_LIST: FakeControl(items=["Akane", "Aoi"], selected="Akane"),
        }
        self.sliders: dict[str, FakeControl] = {
            "volume": FakeControl(value=1),
            "speed": FakeControl(value=1),
        }
        self.dialog_controls: dict[tuple[ControlKind, int], FakeControl] = {}
        self.pending: list[Any] = []
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

        self.controls[ControlKind.PLAY_BUTTON].on["click"] = self._play
        self.controls[ControlKind.STOP_BUTTON].on["click"] = self._stop

    def control(self, kind: ControlKind) -> FakeControl:
        return self.controls[kind]

    def set_speaking(self, speaking: bool) -> None:
        self.controls[ControlKind.SAVE_BUTTON].props["is_enabled"] = not speaking

    def _play(self) -> None:
        self.set_speaking(True)

    def _stop(self) -> None:
        self.set_speaking(False)

    def show(self, title: str, owner: FakeWindow | None = None) -> FakeWindow:
        window = FakeWindow(title, owner if owner is not None else self.main)
        self.windows.insert(0, window)
        return window

    def hide(self, window: FakeWindow) -> None:
        if window in self.windows:
            self.windows.remove(window)

    def add_dialog_control(self, window: FakeWindow, kind: ControlKind) -> FakeControl:
        control = FakeControl()
        self.dialog_controls[(kind, window.window_id)] = control
        return control

    def install_save_flow(
        self,
        *,
        complete_dialog: bool = True,
        write_as: Callable[[str], str] | None = None,
        with_options: bool = False,
    ) -> None:
        """Make the save button open a file dialog that writes the file on confirm.

        ``with_options`` puts an option window in front of the file dialog and
        shows a progress window until the completion dialog is dismissed.
        """

        def open_file_dialog(owner: FakeWindow, closes: list[FakeWindow]) -> None:
            dialog = self.show(SAVE_DIALOG_TITLE, owner=owner)
            field = self.add_dialog_control(dialog, ControlKind.FILE_NAME_FIELD)
            confirm = self.add_dialog_control(dialog, ControlKind.FILE_DIALOG_CONFIRM)

            def confirm_dialog() -> None:
                for window in [dialog, *closes]:
                    self.hide(window)
                path = str(field.read("text"))
                target = Path(write_as(path) if write_as else path)
                target.write_bytes(b"RIFF")
                target.with_suffix(".txt").write_text(str(self.controls[ControlKind.TEXT_BOX].read("text")), encoding="utf-8")
                progress = self.show(SAVE_PROGRESS_TITLE) if with_options else None
                if complete_dialog:
                    done = self.show(SAVE_COMPLETE_TITLE)
                    ok = self.add_dialog_control(done, ControlKind.DIALOG_CONFIRM)

                    def dismiss() -> None:
                        self.hide(done)
                        if progress is not None:
                            self.hide(progress)

                    ok.on["click"] = dismiss
                for token in self.pending:
                    token.complete()
                self.pending.clear()

            confirm.on["click"] = confirm_dialog

        def open_options() -> bool:
            options = self.show(SAVE_OPTIONS_TITLE)
            ok = self.add_dialog_control(options, ControlKind.SAVE_OPTIONS_CONFIRM)

            def confirm_options() -> bool:
                open_file_dialog(options, [options])
                return False

            ok.on["click"] = confirm_options
            return False

        def open_dialog() -> bool:
            if with_options:
                return open_options()
            open_file_dialog(self.main, [])
            return False

        self.controls[ControlKind.SAVE_BUTTON].on["click"] = open_dialog


class FakeBridge:
    def __init__(self, editor: FakeEditor, pid: int) -> None:
        self.editor = editor
        self.process_id = pid
        self.closed = False

    def top_level_windows(self) -> list[FakeWindow]:
        return list(self.editor.windows)

    def close(self) -> None:
        self.closed = True


class FakeLocator:
    def __init__(self, editor: FakeEditor) -> None:
        self.editor = editor

    def locate(self, kind: ControlKind, context: Any = None) -> FakeControl | None:
        if kind is ControlKind.PARAMETER_SLIDER:
            return self.editor.sliders.get(context)
        if isinstance(context, FakeWindow) and context is not self.editor.main:
            return self.editor.dialog_controls.get((kind, context.window_id))
        return self.editor.controls.get(kind)


class FakeInvoker:
    """Run actions synchronously; a handler returning False leaves the token pending."""

    def __init__(self, editor: FakeEditor) -> None:
        self.editor = editor
        self.hold = False

    def invoke(self, handle: FakeControl, action: str, args: tuple[Any, ...] = (), token: Any = None) -> None:
        self.editor.calls.append((action, args))
        if self.hold:
            return
        handler = handle.on.get(action)
        try:
            if handler is not None:
                finished = handler(*args)
            else:
                finished = None
                if action == "set_text":
                    handle.props["text"] = args[0]
                elif action == "set_value":
                    handle.props["value"] = args[0]
                elif action == "select":
                    handle.props["selected"] = args[0]
        except Exception as exc:
            if token is None:
                raise
            token.complete(exc)
            return
        if token is None:
            return
        if finished is False:
            self.editor.pending.append(token)
        else:
            token.complete()


class FakeProcess:
    """Duck-typed stand-in for ``psutil.Process``."""

    def __init__(self, name: str = "FakeVoice.exe", exe: str | None = None) -> None:
        self.pid = next(_pids)
        self._name = name
        self._exe = exe or f"C:/Program Files/FakeVoice/{name}"
        self.running = True

    def name(self) -> str:
        return self._name

    def exe(self) -> str:
        return self._exe

    def is_running(self) -> bool:
        return self.running

    def status(self) -> str:
        return psutil.STATUS_RUNNING if self.running else psutil.STATUS_ZOMBIE

    def wait(self, timeout: float | None = None) -> int:
        if self.running:
            raise psutil.TimeoutExpired(timeout or 0, pid=self.pid)
        return 0

    def terminate(self) -> None:
        self.running = False


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("TALKBRIDGE_STANDARD_TIMEOUT_SECONDS", "0.2")
    monkeypatch.setenv("TALKBRIDGE_SAVE_TIMEOUT_SECONDS", "1")
    monkeypatch.setenv("TALKBRIDGE_POLL_INTERVAL_SECONDS", "0.001")
    monkeypatch.setenv("TALKBRIDGE_SIDECAR_WAIT_SECONDS", "0.05")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def profile() -> ProductProfile:
    return ProductProfile(
        talker_name="FakeVoice",
        process_file_name="FakeVoice.exe",
        main_title_prefix="FakeVoice",
        startup_titles=frozenset({"Splash"}),
        save_dialog_title=SAVE_DIALOG_TITLE,
        save_options_title=SAVE_OPTIONS_TITLE,
        save_progress_title=SAVE_PROGRESS_TITLE,
        save_complete_title=SAVE_COMPLETE_TITLE,
        text_length_limit=20,
        has_characters=True,
        parameters=(
            ParameterDescriptor(id="volume", display_name="Volume", precision=2, default_value=1, max_value=2),
            ParameterDescriptor(id="speed", display_name="Speed", precision=2, default_value=1, min_value="0.5", max_value=4),
        ),
    )


@pytest.fixture
def editor() -> FakeEditor:
    return FakeEditor()


@pytest.fixture
def bridges() -> list[FakeBridge]:
    return []


@pytest.fixture
def process() -> FakeProcess:
    return FakeProcess()


@pytest.fixture
def talker(profile: ProductProfile, editor: FakeEditor, bridges: list[FakeBridge]) -> Iterator[LocatorTalker]:
    def factory(handle) -> FakeBridge:
        bridge = FakeBridge(editor, handle.pid)
        bridges.append(bridge)
        return bridge

    instance = LocatorTalker(
        profile,
        factory,
        FakeLocator(editor),
        FakeInvoker(editor),
        title_probe=lambda pid: editor.main_title,
    )
    yield instance
    instance.close()


@pytest.fixture
def live_talker(talker: LocatorTalker, process: FakeProcess) -> LocatorTalker:
    talker.update([process])
    return talker
