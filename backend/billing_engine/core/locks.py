"""Per-service locks for rounding read-modify-write sequences.

A process-local lock serializes rounding calls for the same service
inside one worker. Cross-process safety comes from the row lock and
the optimistic version column used by the database rounding service.
"""

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

_registry_lock = threading.Lock()
# Entries disappear once no caller holds a reference to the lock
_service_locks: weakref.WeakValueDictionary[int, threading.Lock] = (
    weakref.WeakValueDictionary()
)


def get_service_lock(service_id: int) -> threading.Lock:
    """Get the lock guarding rounding for a service, creating it on first use."""
    with _registry_lock:
        lock = _service_locks.get(service_id)
        if lock is None:
            lock = threading.Lock()
            _service_locks[service_id] = lock
        return lock


@contextmanager
def service_lock(service_id: int) -> Iterator[None]:
    """Hold the per-service lock for the duration of the block."""
    lock = get_service_lock(service_id)
    with lock:
        yield


def reset_service_locks() -> None:
    """Drop all registered locks (for testing)."""
    with _registry_lock:
        _service_locks.clear()
