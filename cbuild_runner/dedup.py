"""
Bounded recency cache used to suppress repeated log lines.

Log pages from the remote log source can overlap, so the same line may be
returned more than once. The cache remembers the most recently recorded keys
up to a fixed capacity; older keys are evicted and may be emitted again.
"""

import threading
from collections import OrderedDict


class LogDedupCache:
    """
    Fixed-capacity LRU set of log line keys.

    Safe to share between threads.
    """

    def __init__(self, capacity: int = 1024):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._keys: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def seen_or_record(self, key: str) -> bool:
        """
        Record a key unless it is already present.

        Returns:
            True if the key was already recorded (cache unchanged),
            False if it was new and has now been recorded
        """
        with self._lock:
            if key in self._keys:
                return True

            self._keys[key] = None
            if len(self._keys) > self.capacity:
                self._keys.popitem(last=False)
            return False

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
