from __future__ import annotations

import time
from dataclasses import dataclass, field

from apscheduler.schedulers.background import BackgroundScheduler
from conftest import FakeProcess

from talkbridge.state import OperationalState
from talkbridge.updater import TalkerUpdater


@dataclass
class _Profile:
    process_file_name: str = "FakeVoice.exe"


@dataclass
class _BrokenTalker:
    talker_name: str = "Broken"
    profile: _Profile = field(default_factory=_Profile)

    def update(self, processes=None) -> None:
        raise RuntimeError("update exploded")


def test_update_passes_the_cached_process_list(live_talker, process) -> None:
    listed: list[str] = []

    def lister(file_name: str):
        listed.append(file_name)
        return [process]

    updater = TalkerUpdater(process_lister=lister)
    updater.update_talker(live_talker)
    updater.update_talker(live_talker)

    assert listed == ["FakeVoice.exe"]
    assert live_talker.state is OperationalState.IDLE
    assert updater.get_last_exception(live_talker) is None


def test_process_list_expires(monkeypatch) -> None:
    monkeypatch.setenv("TALKBRIDGE_PROCESS_LIST_UPDATE_INTERVAL_SECONDS", "0.01")
    from talkbridge.config import get_settings

    get_settings.cache_clear()
    calls: list[str] = []
    updater = TalkerUpdater(process_lister=lambda name: calls.append(name) or [FakeProcess()])

    first = updater.processes_for("FakeVoice.exe")
    time.sleep(0.02)
    second = updater.processes_for("FakeVoice.exe")

    assert len(calls) == 2
    assert first[0].pid != second[0].pid


def test_update_exception_is_recorded_not_raised() -> None:
    talker = _BrokenTalker()
    updater = TalkerUpdater(process_lister=lambda name: [])

    updater.update_talker(talker)

    error = updater.get_last_exception(talker)
    assert isinstance(error, RuntimeError)
    assert str(error) == "update exploded"


def test_register_and_remove_jobs(live_talker) -> None:
    scheduler = BackgroundScheduler(daemon=True)
    updater = TalkerUpdater(scheduler=scheduler, process_lister=lambda name: [])

    job_id = updater.register(live_talker)
    assert updater.register(live_talker) == job_id
    assert [job.id for job in scheduler.get_jobs()] == [job_id]
    assert updater.talkers == [live_talker]

    assert updater.remove(live_talker) is True
    assert scheduler.get_jobs() == []
    assert updater.remove(live_talker) is False


def test_context_manager_starts_and_stops_the_scheduler() -> None:
    updater = TalkerUpdater(process_lister=lambda name: [])
    with updater:
        assert updater.scheduler.running
    assert not updater.scheduler.running
