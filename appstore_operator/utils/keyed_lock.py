"""Per-key mutual exclusion."""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class KeyedLock:
    """Hands out one lock per key; with ``single=True`` every key shares one lock.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the table does not grow with every release ever touched.
    """

    def __init__(self, single: bool = False) -> None:
        self._single = single
        self._global = threading.Lock()
        self._guard = threading.Lock()
        self._locks: dict[Hashable, tuple[threading.Lock, int]] = {}

    @property
    def single(self) -> bool:
        return self._single

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        if self._single:
            with self._global:
                yield
            return

        with self._guard:
            lock, users = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def active_keys(self) -> list[Hashable]:
        with self._guard:
            return list(self._locks)
