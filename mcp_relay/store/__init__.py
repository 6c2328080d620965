from mcp_relay.store.lock import StoreLock
from mcp_relay.store.tool_cache import ToolCacheStore

__all__ = ["StoreLock", "ToolCacheStore"]
