"""
MCP Relay Runtime
=================
Wires the relay components together and owns their lifecycle.

    local caller ── stdio ──► McpServer ──► RelayHandlers ──► RetryingClient ──► tool service
                                                 │
                                         ToolCacheStore ◄── ToolsRefreshLoop (background thread)

start() launches the refresh loop, serve() runs the stdio read loop until
EOF, stop() stops the dispatcher and the loop. run() drains the dispatcher on
EOF so every request already read still gets its reply. The cache is the
only state shared between request handlers and the refresh loop.
"""

import logging
from typing import BinaryIO, Optional, TextIO

import requests

from mcp_relay.core.config import RelayConfig
from mcp_relay.mcp.handlers import RelayHandlers
from mcp_relay.mcp.refresh import ToolsRefreshLoop
from mcp_relay.mcp.requests import RetryingClient
from mcp_relay.mcp.server import McpServer
from mcp_relay.store.tool_cache import ToolCacheStore

logger = logging.getLogger("McpRelay.relay")


class McpRelay:
    """Bidirectional relay between a stdio MCP client and an HTTP tool service."""

    def __init__(
        self,
        config: RelayConfig,
        session: Optional[requests.Session] = None,
        output: Optional[TextIO] = None,
    ):
        self.config = config
        self.client = RetryingClient(
            max_attempts=config.max_attempts,
            retry_interval_sec=config.retry_interval_sec,
            timeout=config.request_timeout_sec,
            session=session,
        )
        self.cache = ToolCacheStore(config.cache_file)
        self.handlers = RelayHandlers(config.server_url, self.client, self.cache)
        self.server = McpServer(self.handlers, output=output)
        self.refresh_loop = ToolsRefreshLoop(
            self.handlers,
            self.client,
            self.cache,
            notify_url=config.notify_url,
            interval_sec=config.refresh_interval_sec,
            change_detection=config.change_detection,
            on_change=self.server.notify_tools_changed,
        )

    def start(self) -> None:
        logger.info("MCP relay started (server_url=%s, cache=%s)", self.config.server_url, self.cache.cache_file)
        if self.config.refresh_enabled:
            self.refresh_loop.start()

    def serve(self, stream: BinaryIO) -> None:
        self.server.serve(stream)

    def stop(self, drain: bool = False) -> None:
        """
        Stop the dispatcher, then the refresh loop, then the HTTP client.

        ``drain=True`` lets in-flight tools/list and tools/call requests run
        to completion (or retry exhaustion) and write their replies first.
        """
        self.server.stop(wait=drain)
        self.refresh_loop.stop()
        self.client.close()
        logger.info("MCP relay stopped")

    def run(self, stream: BinaryIO) -> None:
        """Start, serve until stdin reaches EOF, answer what is in flight, then stop."""
        self.start()
        try:
            self.serve(stream)
        finally:
            self.stop(drain=True)
