"""
In-process locks for upload sessions.

LockRegistry hands out one lock per session id, created on first use and never
removed, so the registry grows with the number of sessions this process has
finalized. StripedLock maps arbitrary keys onto a fixed pool of locks.
"""
import threading
import zlib
from typing import Dict, Hashable, List


class LockRegistry:
    """Maps a session id to its exclusive lock"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        # The guard only covers the dict mutation; callers hold the
        # returned lock for as long as they need.
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class StripedLock:
    """Fixed pool of locks selected by a stable hash of the key"""

    def __init__(self, stripes: int = 64):
        if stripes <= 0:
            raise ValueError("stripes must be positive")
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(stripes)]

    def get(self, key: Hashable) -> threading.Lock:
        digest = zlib.crc32(repr(key).encode("utf-8"))
        return self._locks[digest % len(self._locks)]


# Process-wide registry used for finalize
upload_locks = LockRegistry()
