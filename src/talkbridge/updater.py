"""Opt-in background polling of talker state."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from contextlib import suppress

import psutil
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from talkbridge.config import Settings, get_settings
from talkbridge.process import processes_by_name
from talkbridge.talker import TalkerFacade

ProcessLister = Callable[[str], list[psutil.Process]]


class TalkerUpdater:
    """Run ``TalkerFacade.update`` for every registered talker on an interval.

    Talkers sharing an executable name share one process list, refreshed at
    most once per ``process_list_update_interval_seconds``. An exception raised
    by an update is logged and kept as that talker's last exception.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        scheduler: BaseScheduler | None = None,
        process_lister: ProcessLister = processes_by_name,
    ) -> None:
        self.settings = settings or get_settings()
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)
        self._process_lister = process_lister
        self._lock = threading.Lock()
        self._process_cache: dict[str, tuple[float, list[psutil.Process]]] = {}
        self._talkers: dict[str, TalkerFacade] = {}
        self._last_exceptions: dict[str, BaseException] = {}

    def __enter__(self) -> TalkerUpdater:
        if not self.scheduler.running:
            self.scheduler.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.scheduler.running:
            with suppress(Exception):
                self.scheduler.shutdown()

    @staticmethod
    def _job_id(talker: TalkerFacade) -> str:
        return f"talker:{talker.talker_name}:{id(talker)}"

    def register(self, talker: TalkerFacade) -> str:
        job_id = self._job_id(talker)
        with self._lock:
            if job_id in self._talkers:
                return job_id
            self._talkers[job_id] = talker
        self.scheduler.add_job(
            self.update_talker,
            trigger=IntervalTrigger(seconds=self.settings.update_interval_seconds),
            id=job_id,
            args=[talker],
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )
        logger.bind(talker=talker.talker_name).debug("registered for background updates")
        return job_id

    def remove(self, talker: TalkerFacade) -> bool:
        job_id = self._job_id(talker)
        with self._lock:
            if self._talkers.pop(job_id, None) is None:
                return False
            self._last_exceptions.pop(job_id, None)
        with suppress(JobLookupError):
            self.scheduler.remove_job(job_id)
        return True

    @property
    def talkers(self) -> list[TalkerFacade]:
        with self._lock:
            return list(self._talkers.values())

    def get_last_exception(self, talker: TalkerFacade) -> BaseException | None:
        with self._lock:
            return self._last_exceptions.get(self._job_id(talker))

    def processes_for(self, file_name: str) -> list[psutil.Process]:
        """Cached process list for one executable name."""
        now = time.monotonic()
        with self._lock:
            cached = self._process_cache.get(file_name)
            if cached is not None and now - cached[0] < self.settings.process_list_update_interval_seconds:
                return cached[1]
        processes = self._process_lister(file_name)
        with self._lock:
            self._process_cache[file_name] = (now, processes)
        return processes

    def update_talker(self, talker: TalkerFacade) -> None:
        """One scheduled pass; exceptions are recorded, never raised."""
        job_id = self._job_id(talker)
        try:
            talker.update(self.processes_for(talker.profile.process_file_name))
        except Exception as exc:
            logger.bind(talker=talker.talker_name).exception("background update failed")
            with self._lock:
                self._last_exceptions[job_id] = exc
        else:
            with self._lock:
                self._last_exceptions.pop(job_id, None)
