import threading
from contextlib import contextmanager
from typing import Dict


class InstanceLockRegistry:
    """Per-instance re-entrant locks serializing transitions and seat mutations in this process"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}

    def lock_for(self, instance_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(instance_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[instance_id] = lock
            return lock

    @contextmanager
    def hold(self, instance_id: int):
        lock = self.lock_for(instance_id)
        with lock:
            yield


instance_locks = InstanceLockRegistry()
