from mcp_relay.core.config import RelayConfig
from mcp_relay.core.types import InputSchema, ToolDescriptor, parse_tools, tools_to_wire

__all__ = ["RelayConfig", "InputSchema", "ToolDescriptor", "parse_tools", "tools_to_wire"]
