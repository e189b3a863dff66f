"""OS process discovery and liveness for target programs."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass

import psutil
from loguru import logger

from talkbridge.remote import TitleProbe


def _no_title(pid: int) -> str | None:
    return None


class ProcessHandle:
    """One running instance of a target program.

    The main window title is supplied by ``title_probe`` because window titles
    belong to the window system rather than to the process table. Without a
    probe the title is unknown and state inference goes to the bridge.
    """

    def __init__(
        self,
        process: psutil.Process,
        *,
        product_name: str | None = None,
        title_probe: TitleProbe | None = None,
    ) -> None:
        self._process = process
        self.pid: int = process.pid
        self.product_name = product_name
        self._title_probe = title_probe or _no_title

    def __repr__(self) -> str:
        return f"ProcessHandle(pid={self.pid}, name={self.executable_name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProcessHandle):
            return NotImplemented
        return self.pid == other.pid and self.executable_name == other.executable_name

    def __hash__(self) -> int:
        return hash(self.pid)

    @property
    def executable_name(self) -> str:
        try:
            return self._process.name()
        except psutil.Error:
            return ""

    @property
    def executable_path(self) -> str | None:
        try:
            return self._process.exe() or None
        except psutil.Error:
            return None

    @property
    def executable_identity(self) -> tuple[str, str | None]:
        return (self.executable_name, self.product_name)

    @property
    def has_exited(self) -> bool:
        try:
            if not self._process.is_running():
                return True
            return self._process.status() == psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return True
        except psutil.Error:
            return False

    @property
    def main_window_title(self) -> str | None:
        if self.has_exited:
            return None
        return self._title_probe(self.pid)

    def wait_for_exit(self, timeout: float = 0) -> bool:
        try:
            self._process.wait(timeout=timeout)
        except psutil.TimeoutExpired:
            return False
        except psutil.NoSuchProcess:
            return True
        return True

    def terminate(self) -> None:
        try:
            self._process.terminate()
        except psutil.NoSuchProcess:
            logger.debug("process {} already gone on terminate", self.pid)


@dataclass
class ProcessDetector:
    """Find target processes by executable name and product identity."""

    file_name: str | None = None
    product_name: str | None = None
    predicate: Callable[[ProcessHandle], bool] | None = None
    title_probe: TitleProbe | None = None

    def matches_name(self, process: psutil.Process) -> bool:
        if self.file_name is None:
            return True
        wanted = os.path.normcase(self.file_name)
        try:
            name = os.path.normcase(process.name())
        except psutil.Error:
            return False
        return name == wanted or os.path.splitext(name)[0] == os.path.splitext(wanted)[0]

    def wrap(self, process: psutil.Process) -> ProcessHandle:
        return ProcessHandle(process, product_name=self.product_name, title_probe=self.title_probe)

    def detect(self, processes: Iterable[psutil.Process] | None = None) -> list[ProcessHandle]:
        """Return live matching processes.

        An explicit ``processes`` list is trusted to be pre-filtered by
        executable name, so only the identity predicate is applied to it.
        """
        if processes is None:
            candidates: Iterable[psutil.Process] = (p for p in psutil.process_iter() if self.matches_name(p))
        else:
            candidates = processes

        found: list[ProcessHandle] = []
        for process in candidates:
            handle = self.wrap(process)
            try:
                if handle.has_exited:
                    continue
                if self.predicate is not None and not self.predicate(handle):
                    continue
            except psutil.Error:
                continue
            found.append(handle)
        return found


def processes_by_name(file_name: str) -> list[psutil.Process]:
    """Snapshot of processes whose executable matches ``file_name``."""
    detector = ProcessDetector(file_name=file_name)
    return [p for p in psutil.process_iter() if detector.matches_name(p)]
