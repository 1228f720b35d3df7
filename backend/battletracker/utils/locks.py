"""
In-process mutual exclusion keyed by entity.

Mutations of a round's ledger and status hold scoped_lock("round", round_id).
Report submission and resolution hold the round scope and then
scoped_lock("match", match_id); locks are always taken round before match.
Services also take a row lock (SELECT ... FOR UPDATE) inside the transaction
so several worker processes on Postgres serialise the same way; SQLite
ignores it.

An entry lives in the registry only while some thread holds or waits for it.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Tuple

_registry_lock = threading.Lock()
# (scope, key) -> [lock, number of threads holding or waiting]
_locks: Dict[Tuple[str, int], List] = {}


def _acquire_entry(scope: str, key: int) -> threading.RLock:
    with _registry_lock:
        entry = _locks.get((scope, key))
        if entry is None:
            entry = [threading.RLock(), 0]
            _locks[(scope, key)] = entry
        entry[1] += 1
        return entry[0]


def _release_entry(scope: str, key: int) -> None:
    with _registry_lock:
        entry = _locks[(scope, key)]
        entry[1] -= 1
        if entry[1] == 0:
            del _locks[(scope, key)]


def active_lock_count() -> int:
    with _registry_lock:
        return len(_locks)


@contextmanager
def scoped_lock(scope: str, key: int) -> Iterator[None]:
    lock = _acquire_entry(scope, key)
    try:
        with lock:
            yield
    finally:
        _release_entry(scope, key)
