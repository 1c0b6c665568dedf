"""Canonical pair keys and per-pair mutual exclusion."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class PairKey:
    """Direction-independent identifier for the link between two identities."""

    low: uuid.UUID
    high: uuid.UUID

    def __contains__(self, user_id: object) -> bool:
        return user_id == self.low or user_id == self.high


def canonicalize(user_a: uuid.UUID, user_b: uuid.UUID) -> PairKey:
    """Order two ids so that ``canonicalize(a, b) == canonicalize(b, a)``.

    Ids are compared by their string form, which is stable across databases
    and matches the ordering used when a block creates a fresh row.
    """
    if user_a == user_b:
        raise ValueError("A pair needs two distinct identities")
    if str(user_a) < str(user_b):
        return PairKey(user_a, user_b)
    return PairKey(user_b, user_a)


class PairLocks:
    """Process-wide locks keyed by ``PairKey``.

    Entries are reference counted and discarded once no thread holds or waits
    for them, so the table only grows with the number of pairs in flight.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[PairKey, list] = {}

    @contextmanager
    def hold(self, key: PairKey) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        lock: threading.Lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_pair_locks = PairLocks()


def get_pair_locks() -> PairLocks:
    """Return the shared lock table used by every relationship mutation."""
    return _pair_locks
