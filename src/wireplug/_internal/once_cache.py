from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from typing import Any, Generic, TypeVar

from wireplug.lock_mode import LockMode

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING: Any = object()


class _Slot:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class OnceCache(Generic[K, V]):
    """Memoize one value per key, computing it at most once.

    Reads of populated slots take no lock. A miss locks only the slot of the
    requested key, so unrelated keys are never serialized behind each other.
    A computation that raises leaves the slot empty and a later call retries.
    Populated slots never change. A slot's lock lives while a caller holds or
    waits on it.
    """

    def __init__(self, lock_mode: LockMode = LockMode.THREAD) -> None:
        self._values: dict[K, V] = {}
        self._slots: dict[K, _Slot] = {}
        self._slots_guard = threading.Lock()
        self._lock_mode = lock_mode

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get_or_create(self, key: K, create: Callable[[], V]) -> V:
        value = self._values.get(key, _MISSING)
        if value is not _MISSING:
            return value
        if self._lock_mode is LockMode.NONE:
            return self._create(key, create)

        slot = self._enter_slot(key)
        try:
            with slot.lock:
                return self._create(key, create)
        finally:
            self._leave_slot(key, slot)

    def _create(self, key: K, create: Callable[[], V]) -> V:
        value = self._values.get(key, _MISSING)
        if value is _MISSING:
            value = create()
            self._values[key] = value
        return value

    def _enter_slot(self, key: K) -> _Slot:
        with self._slots_guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
            return slot

    def _leave_slot(self, key: K, slot: _Slot) -> None:
        with self._slots_guard:
            slot.users -= 1
            if slot.users == 0:
                del self._slots[key]
