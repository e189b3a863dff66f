"""Capabilities consumed from the remote reflection bridge.

The core never walks a product's object graph itself. It reads and writes
properties on opaque handles, enumerates top-level windows, and asks a
product-specific locator for the handle of a named control kind. Anything that
implements these protocols can back a talker: a reflection bridge into a live
process, an accessibility API, or the in-memory fakes used in tests.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from talkbridge.process import ProcessHandle
    from talkbridge.waiter import PendingAsyncAction


class ControlKind(StrEnum):
    """Abstract controls a locator knows how to resolve."""

    TEXT_BOX = "text_box"
    PLAY_BUTTON = "play_button"
    STOP_BUTTON = "stop_button"
    HEAD_BUTTON = "head_button"
    SAVE_BUTTON = "save_button"
    BUSY_INDICATOR = "busy_indicator"
    CHARACTER_LIST = "character_list"
    PARAMETER_SLIDER = "parameter_slider"
    FOCUS_ANCHOR = "focus_anchor"
    SAVE_OPTIONS_CONFIRM = "save_options_confirm"
    FILE_NAME_FIELD = "file_name_field"
    FILE_DIALOG_CONFIRM = "file_dialog_confirm"
    DIALOG_CONFIRM = "dialog_confirm"


CONTROL_NAMES: dict[ControlKind, str] = {
    ControlKind.TEXT_BOX: "text input box",
    ControlKind.PLAY_BUTTON: "play button",
    ControlKind.STOP_BUTTON: "stop button",
    ControlKind.HEAD_BUTTON: "rewind button",
    ControlKind.SAVE_BUTTON: "save audio button",
    ControlKind.BUSY_INDICATOR: "busy indicator",
    ControlKind.CHARACTER_LIST: "character list",
    ControlKind.PARAMETER_SLIDER: "parameter slider",
    ControlKind.FOCUS_ANCHOR: "focus anchor",
    ControlKind.SAVE_OPTIONS_CONFIRM: "save options OK button",
    ControlKind.FILE_NAME_FIELD: "file name field",
    ControlKind.FILE_DIALOG_CONFIRM: "file dialog save button",
    ControlKind.DIALOG_CONFIRM: "dialog OK button",
}


@runtime_checkable
class RemoteHandle(Protocol):
    """Reference to one object living inside the target process."""

    def read(self, name: str) -> Any: ...

    def write(self, name: str, value: Any) -> None: ...

    def children(self) -> Sequence[RemoteHandle]: ...


@runtime_checkable
class RemoteWindow(RemoteHandle, Protocol):
    """A top-level window of the target process."""

    @property
    def window_id(self) -> int: ...

    @property
    def title(self) -> str: ...

    @property
    def owner(self) -> RemoteWindow | None: ...


class AutomationBridge(Protocol):
    """Live attachment into one process's object graph."""

    @property
    def process_id(self) -> int: ...

    def top_level_windows(self) -> Sequence[RemoteWindow]: ...

    def close(self) -> None: ...


class ControlLocator(Protocol):
    """Product-specific resolution of an abstract control to a concrete handle."""

    def locate(self, kind: ControlKind, context: Any = None) -> RemoteHandle | None: ...


class ActionInvoker(Protocol):
    """Fire-and-forget invocation of a remote action.

    When ``token`` is given the invoker must complete it once the action has run
    inside the target, recording any exception the target raised.
    """

    def invoke(
        self,
        handle: RemoteHandle,
        action: str,
        args: tuple[Any, ...] = (),
        token: PendingAsyncAction | None = None,
    ) -> None: ...


BridgeFactory = Callable[["ProcessHandle"], AutomationBridge]
TitleProbe = Callable[[int], str | None]
