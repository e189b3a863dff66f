from __future__ import annotations

import pytest
from conftest import FakeBridge, FakeEditor, FakeProcess

from talkbridge.errors import SessionClosedError
from talkbridge.process import ProcessHandle
from talkbridge.session import AutomationSession, SessionHolder


def _holder(editor: FakeEditor, bridges: list[FakeBridge]) -> SessionHolder:
    def factory(handle):
        bridge = FakeBridge(editor, handle.pid)
        bridges.append(bridge)
        return bridge

    return SessionHolder(factory)


def test_closed_session_refuses_use(editor) -> None:
    bridge = FakeBridge(editor, 1)
    with AutomationSession(bridge, 1) as session:
        assert session.top_level_windows() == [editor.main]

    assert bridge.closed
    with pytest.raises(SessionClosedError):
        session.top_level_windows()
    session.close()


def test_sync_follows_the_process(editor) -> None:
    bridges: list[FakeBridge] = []
    holder = _holder(editor, bridges)
    first = ProcessHandle(FakeProcess())
    second = ProcessHandle(FakeProcess())

    assert holder.sync(first) is True
    assert holder.current.owner_pid == first.pid
    assert holder.sync(first) is False

    assert holder.sync(second) is True
    assert holder.current.owner_pid == second.pid
    assert bridges[0].closed

    assert holder.sync(None) is True
    assert holder.current is None
    assert bridges[1].closed
    assert holder.sync(None) is False


def test_session_for_other_pid_is_temporary(editor) -> None:
    bridges: list[FakeBridge] = []
    holder = _holder(editor, bridges)
    held = ProcessHandle(FakeProcess())
    other = ProcessHandle(FakeProcess())
    holder.sync(held)

    session, is_held = holder.session_for(held)
    assert is_held and session is holder.current

    session, is_held = holder.session_for(other)
    assert not is_held
    assert session.owner_pid == other.pid
    assert holder.current.owner_pid == held.pid
