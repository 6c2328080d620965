"""
Tool schema normalization.

Clients validate tool input schemas against JSON Schema 2020-12. Only the
dialect tag is rewritten; the schema body is not migrated between drafts.
"""

from typing import List

from mcp_relay.core.types import InputSchema, ToolDescriptor
from .definitions import JSON_SCHEMA_2020_12, LEGACY_DIALECT_MARKER


def default_input_schema() -> InputSchema:
    """Schema for a tool that declares no parameters."""
    return InputSchema.model_validate({
        "type": "object",
        "properties": {},
        "additionalProperties": False,
        "$schema": JSON_SCHEMA_2020_12,
    })


def _needs_canonical_dialect(dialect) -> bool:
    if not dialect:
        return True
    return LEGACY_DIALECT_MARKER in dialect


def normalize_tool(tool: ToolDescriptor) -> ToolDescriptor:
    """Return a normalized copy of ``tool``; the input is not modified."""
    normalized = tool.model_copy(deep=True)
    if normalized.input_schema is None:
        normalized.input_schema = default_input_schema()
    elif _needs_canonical_dialect(normalized.input_schema.dialect):
        normalized.input_schema.dialect = JSON_SCHEMA_2020_12
    return normalized


def normalize_tools(tools: List[ToolDescriptor]) -> List[ToolDescriptor]:
    return [normalize_tool(tool) for tool in tools]
