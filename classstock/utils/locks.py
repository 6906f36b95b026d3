import threading
import weakref
from contextlib import contextmanager
from typing import Iterator


class AccountLockRegistry:
    """One re-entrant lock per account id.

    Serializes read-modify-write cycles on the same student account inside
    one process. Different accounts never contend. A lock is dropped once
    nobody holds or waits on it, so removed and unknown ids do not pile up.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def lock_for(self, account_id: str):
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_id] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, *account_ids: str) -> Iterator[None]:
        # Sorted acquisition keeps multi-account operations deadlock free.
        locks = [self.lock_for(account_id) for account_id in sorted(set(account_ids))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()
