"""
MCP Relay Tools Refresh Loop
----------------------------
Background thread that periodically re-fetches the tool list, compares it
with the cache and, when it changed:

1. NOTIFY: POST an empty body to the companion notify endpoint
2. PERSIST: overwrite the cache with the fresh list
3. ANNOUNCE: invoke the optional on_change callback (the stdio server uses
   it to send notifications/tools/list_changed)

A failed fetch skips the cycle; notification and callback failures are logged
and never stop the loop.
"""

import logging
import threading
from typing import Callable, List, Optional

from mcp_relay.core.types import ToolDescriptor, tools_to_wire
from mcp_relay.errors import NotificationError, RelayError
from mcp_relay.store.tool_cache import ToolCacheStore

from .handlers import RelayHandlers
from .requests import RetryingClient

logger = logging.getLogger("McpRelay.mcp.refresh")

CYCLE_SKIPPED = "skipped"
CYCLE_UNCHANGED = "unchanged"
CYCLE_UPDATED = "updated"


def tool_lists_differ(
    cached: Optional[List[ToolDescriptor]],
    fresh: List[ToolDescriptor],
    mode: str = "structural",
) -> bool:
    """
    Decide whether the fresh list replaces the cached one.

    ``length`` compares only list sizes, so two different tool sets of equal
    size count as unchanged. ``structural`` compares the full wire documents.
    """
    if cached is None:
        return True
    if mode == "length":
        return len(cached) != len(fresh)
    return tools_to_wire(cached) != tools_to_wire(fresh)


class ToolsRefreshLoop:
    """Owns the periodic refresh thread; started and stopped by the relay."""

    def __init__(
        self,
        handlers: RelayHandlers,
        client: RetryingClient,
        cache: ToolCacheStore,
        notify_url: str,
        interval_sec: float = 30.0,
        change_detection: str = "structural",
        on_change: Optional[Callable[[List[ToolDescriptor]], None]] = None,
    ):
        self.handlers = handlers
        self.client = client
        self.cache = cache
        self.notify_url = notify_url
        self.interval_sec = interval_sec
        self.change_detection = change_detection
        self.on_change = on_change
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cycle_count = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    def start(self) -> None:
        if self.running:
            logger.warning("Tools refresh loop already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="mcp-relay-tools-refresh",
            daemon=True,
        )
        self._thread.start()
        logger.info("Tools refresh loop started (interval=%.1fs)", self.interval_sec)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Tools refresh loop did not stop within %.1fs", timeout)
            self._thread = None
        logger.info("Tools refresh loop stopped")

    def _run_loop(self) -> None:
        while not self._stop_event.wait(self.interval_sec):
            try:
                self.run_cycle()
            except Exception:
                logger.exception("Unexpected error in tools refresh cycle")

    def run_cycle(self) -> str:
        """Execute a single refresh cycle and return its outcome."""
        self._cycle_count += 1
        try:
            tools = self.handlers.fetch_tools()
        except RelayError as e:
            logger.debug("Refresh cycle #%d skipped: %s", self._cycle_count, e)
            return CYCLE_SKIPPED

        cached = self.cache.load()
        if not tool_lists_differ(cached, tools, self.change_detection):
            logger.debug("Fetched tools list is the same as the cached one, not updating cache")
            return CYCLE_UNCHANGED

        try:
            self._notify()
        except NotificationError as e:
            logger.warning("Failed to notify tools updated: %s", e)

        self.cache.save(tools)
        self._announce(tools)
        return CYCLE_UPDATED

    def _notify(self) -> None:
        try:
            self.client.send(self.notify_url, "", parse_json=False)
        except RelayError as e:
            raise NotificationError(str(e)) from e

    def _announce(self, tools: List[ToolDescriptor]) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(tools)
        except Exception as e:
            logger.warning("Tools change callback failed: %s", e)
