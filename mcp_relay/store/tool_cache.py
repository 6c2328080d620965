"""
MCP Relay Tool Cache
--------------------
Durable last-known-good tool list, used as a fallback when the remote
service is unreachable. A single JSON document lives at a fixed per-user
path; it is never deleted by the relay and survives restarts.

Writes go to a temporary sibling and are swapped in with ``os.replace`` while
holding the writer lock, so readers (which take no lock) only ever observe a
complete document.
"""

import os
import json
import logging
import tempfile
from pathlib import Path
from typing import List, Optional

from mcp_relay.core.types import ToolDescriptor, parse_tools, tools_to_wire
from mcp_relay.errors import CacheError, RemoteProtocolError
from mcp_relay.store.lock import StoreLock, get_store_lock

logger = logging.getLogger("McpRelay.store.cache")


class ToolCacheStore:
    """Persists and retrieves the last successfully fetched tool list."""

    def __init__(self, cache_file: Path, lock: Optional[StoreLock] = None):
        self.cache_file = Path(cache_file)
        self.lock = lock or get_store_lock(self.cache_file.parent)

    def load(self) -> Optional[List[ToolDescriptor]]:
        """Return the cached list, or None when it is missing or unusable."""
        try:
            return self._read()
        except FileNotFoundError:
            logger.info("No tool cache at %s", self.cache_file)
        except CacheError as e:
            logger.warning("Failed to load cache file: %s", e)
        return None

    def save(self, tools: List[ToolDescriptor]) -> bool:
        """Overwrite the cache. Returns False (after logging) on any failure."""
        try:
            self._ensure_cache_dir()
            with self.lock.acquire():
                self._write_atomic(json.dumps(tools_to_wire(tools)))
        except (CacheError, OSError, TypeError, ValueError) as e:
            logger.warning("Failed to save cache: %s", e)
            return False
        logger.info("Tools list cache saved (%d tools)", len(tools))
        return True

    def _ensure_cache_dir(self) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        except FileExistsError:
            # A non-directory occupies the path; the write below reports it.
            logger.warning("Cache path %s exists but is not a directory", self.cache_file.parent)

    def _read(self) -> List[ToolDescriptor]:
        try:
            raw = self.cache_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(f"unreadable cache {self.cache_file}: {e}") from e
        try:
            return parse_tools(json.loads(raw))
        except json.JSONDecodeError as e:
            raise CacheError(f"corrupt cache {self.cache_file}: {e}") from e
        except RemoteProtocolError as e:
            raise CacheError(f"invalid cache {self.cache_file}: {e}") from e

    def _write_atomic(self, serialized: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.cache_file.parent),
            prefix=".tools-list-",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(serialized)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.cache_file)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
