# blueprints/core/locks.py
from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLocks:
    """Реестр блокировок по строковому ключу (корпус, жилец, пара заявки...).

    ``hold(*keys)`` берёт все блокировки в отсортированном порядке, поэтому
    два потока, держащие пересекающиеся наборы ключей, не встанут в deadlock.
    Блокировки реентерабельные: сервис может вызвать другой сервис под тем же ключом.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys) -> Iterator[None]:
        ordered = sorted({str(k) for k in keys})
        acquired: list[threading.RLock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
