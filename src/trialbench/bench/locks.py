"""Per-workload measurement locks.

At most one measurement of a given workload may be in flight at a time:
two threads sampling the same workload would contend with each other and
corrupt both measurements.  Different workloads measure independently.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator

_registry_lock = threading.Lock()
# id(workload) -> [lock, number of holders and waiters]
_locks: dict[int, list[Any]] = {}


@contextmanager
def measurement_lock(workload: object) -> Iterator[None]:
    """Hold the measurement lock of *workload* for the ``with`` body.

    The lock is re-entrant, so a benchmark that tunes and then runs the
    same workload from one thread does not deadlock.  Entries are
    dropped once nobody holds or waits on them; the workload is alive
    for that whole span, so its ``id`` cannot be reused meanwhile.
    """
    key = id(workload)
    with _registry_lock:
        entry = _locks.get(key)
        if entry is None:
            entry = _locks[key] = [threading.RLock(), 0]
        entry[1] += 1

    lock: threading.RLock = entry[0]
    try:
        with lock:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[key]


def active_locks() -> int:
    """Number of workloads currently holding or awaiting a lock."""
    with _registry_lock:
        return len(_locks)
