"""Keyed in-process locks that serialize writers of the same shared record.

A wallet balance and an order's settlement each need a single writer at a
time. Callers hold the lock for the whole unit of work (load, mutate,
commit), so the lock is taken around ``current_domain.process(...)``
rather than inside a handler.

Locks exist only while someone holds or waits for them; the registry
drops a key as soon as its last user releases it.
"""

import threading
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class KeyedLocks:
    """A registry of re-entrant locks, one per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: str):
        """Acquire the locks for ``keys`` in a stable order and release them on exit."""
        ordered = sorted(set(keys))
        entries = [(key, self._checkout(key)) for key in ordered]
        acquired = []
        try:
            for key, entry in entries:
                entry.lock.acquire()
                acquired.append((key, entry))
            yield
        finally:
            for _, entry in reversed(acquired):
                entry.lock.release()
            for key, entry in entries:
                self._checkin(key, entry)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()


settlement_locks = KeyedLocks()


def wallet_key(customer_id) -> str:
    return f"wallet:{customer_id}"


def order_key(order_number) -> str:
    return f"order:{order_number}"


def task_key(task_id) -> str:
    return f"task:{task_id}"
