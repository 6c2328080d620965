"""
MCP HTTP Relay: exposes a remote HTTP tool service to a stdio MCP client.
"""

from mcp_relay.core.config import RelayConfig
from mcp_relay.core.types import InputSchema, ToolDescriptor
from mcp_relay.errors import (
    CacheError,
    NotificationError,
    RelayError,
    RelayTransportError,
    RemoteClientError,
    RemoteProtocolError,
    RemoteServerError,
    RetryExhaustedError,
)
from mcp_relay.relay import McpRelay
from mcp_relay.version import __version__

__all__ = [
    "__version__",
    "McpRelay",
    "RelayConfig",
    "ToolDescriptor",
    "InputSchema",
    "RelayError",
    "RelayTransportError",
    "RemoteServerError",
    "RemoteClientError",
    "RemoteProtocolError",
    "RetryExhaustedError",
    "CacheError",
    "NotificationError",
]
