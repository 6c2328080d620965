"""
MCP Relay Store Lock
--------------------
Cross-process advisory file locking for the tool-list cache.
Several relay processes (one per editor window) share one cache file, so
writers are serialized across processes as well as threads.
"""

import logging
import threading
import contextlib
from pathlib import Path

import portalocker

from mcp_relay.errors import CacheError

logger = logging.getLogger("McpRelay.StoreLock")


class StoreLock:
    """
    Manages an exclusive writer lock using portalocker, paired with an
    in-process mutex so threads of the same relay queue up cheaply.
    """
    def __init__(self, lock_file_path: Path, timeout: float = 5.0):
        self.lock_file_path = lock_file_path
        self.timeout = timeout
        self._thread_lock = threading.Lock()

    @contextlib.contextmanager
    def acquire(self):
        """Acquire the writer lock; raises CacheError on contention timeout."""
        with self._thread_lock:
            self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with portalocker.Lock(
                    str(self.lock_file_path),
                    mode="a",
                    timeout=self.timeout,
                    flags=portalocker.LOCK_EX | portalocker.LOCK_NB,
                ) as lock:
                    yield lock
            except portalocker.exceptions.LockException as e:
                logger.error("Failed to acquire lock on %s after %ss: %s", self.lock_file_path, self.timeout, e)
                raise CacheError(f"Cache lock contention: {e}") from e


def get_store_lock(cache_dir: Path) -> StoreLock:
    """Helper to get the standard writer lock for a cache directory."""
    return StoreLock(cache_dir / ".tools-cache.lock")
