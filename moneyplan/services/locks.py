"""
Per-budget write serialization.

Every write to a budget's records goes through the lock for that budget,
so read-then-write sequences (mapping uniqueness, plan upsert) never
interleave. Reads do not take the lock. Locks are re-entrant so a service
method may call another locked method on the same budget.
"""

import threading
from contextlib import contextmanager
from typing import Dict


class BudgetLockRegistry:
    """Hands out one re-entrant lock per budget id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, budget_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(budget_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[budget_id] = lock
            return lock

    @contextmanager
    def writing(self, budget_id: str):
        lock = self.lock_for(budget_id)
        with lock:
            yield


budget_locks = BudgetLockRegistry()
