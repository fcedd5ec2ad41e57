"""Per-key mutual exclusion for command handlers.

Mutations of one order must not interleave (auto-split and manual split
racing on the same pool), and the batch ledger's additive counters must not
lose updates when two orders record the same ``(batch, product)`` pair.

Handlers wrap their load/mutate/persist cycle in
``order_locks.transaction(order_id)`` or
``batch_locks.transaction(batch_number, product_id)``. The handler's own unit
of work only commits after the handler returns, so ``transaction`` opens a
nested ``UnitOfWork`` that commits while the key is still held. Different
keys never block each other.

Locks live only while some thread holds or waits on them; idle keys drop out
of the registry.
"""

import threading
import weakref
from contextlib import contextmanager

from protean.core.unit_of_work import UnitOfWork


class KeyedLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def _lock_for(self, key: tuple):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *key):
        lock = self._lock_for(tuple(str(part) for part in key))
        with lock:
            yield

    @contextmanager
    def transaction(self, *key):
        """Hold ``key`` until a fresh unit of work has committed."""
        with self.hold(*key), UnitOfWork():
            yield

    def __len__(self):
        return len(self._locks)


order_locks = KeyedLocks()
batch_locks = KeyedLocks()
