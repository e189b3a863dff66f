"""Per-talker exclusive access to the automation session."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class OperationSerializer:
    """Allow one operation at a time against a single external process.

    Operations must not call other serialized operations while holding the
    lock. ``notifying`` is raised while a save publishes its state change to
    listeners from inside the lock; callers check it first and refuse instead
    of blocking on a lock their own caller already holds.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._notifying = False

    @property
    def notifying(self) -> bool:
        return self._notifying

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._lock:
            yield

    @contextmanager
    def notifying_scope(self) -> Iterator[None]:
        self._notifying = True
        try:
            yield
        finally:
            self._notifying = False
