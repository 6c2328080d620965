"""
MCP Relay Core Types
--------------------
Partially-structured tool documents. Fields the relay reasons about are
explicit; everything else the remote service sends is preserved verbatim in
the model's extra storage and written back out unchanged.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mcp_relay.errors import RemoteProtocolError


class InputSchema(BaseModel):
    """JSON-Schema-like parameter document; only the dialect tag is typed."""
    model_config = ConfigDict(extra="allow")

    dialect: Optional[str] = Field(default=None, alias="$schema")

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.model_extra or {})
        if "dialect" in self.model_fields_set:
            payload["$schema"] = self.dialect
        return payload


class ToolDescriptor(BaseModel):
    """One invocable capability. Identity is by name."""
    model_config = ConfigDict(extra="allow")

    name: str
    # Free-form; any JSON value passes through.
    description: Optional[Any] = None
    input_schema: Optional[InputSchema] = Field(default=None, alias="inputSchema")

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name}
        if "description" in self.model_fields_set:
            payload["description"] = self.description
        if self.input_schema is not None:
            payload["inputSchema"] = self.input_schema.to_dict()
        payload.update(self.model_extra or {})
        return payload


def parse_tools(raw: Any) -> List[ToolDescriptor]:
    """Validate a wire-format tool list."""
    if not isinstance(raw, list):
        raise RemoteProtocolError(f"Expected a list of tools, got {type(raw).__name__}")
    try:
        return [ToolDescriptor.model_validate(item) for item in raw]
    except ValidationError as exc:
        raise RemoteProtocolError(f"Invalid tool descriptor: {exc}") from exc


def tools_to_wire(tools: List[ToolDescriptor]) -> List[Dict[str, Any]]:
    return [tool.to_dict() for tool in tools]
