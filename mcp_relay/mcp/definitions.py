"""
MCP Relay Protocol Constants & Seed Tools
"""

from typing import List, Dict, Any

JSON_SCHEMA_2020_12 = "https://json-schema.org/draft/2020-12/schema"
LEGACY_DIALECT_MARKER = "draft-07"

SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")
JSONRPC_VERSION = "2.0"

SERVER_NAME = "mcp-http-relay"

# Methods
METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_PING = "ping"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"
METHOD_TOOLS_LIST_CHANGED = "notifications/tools/list_changed"

# Standard JSON-RPC error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
PARSE_ERROR = -32700

# Relay specific error codes
SERVER_BUSY = -32001

REMOTE_UNAVAILABLE_MESSAGE = (
    "Failed to communicate with the remote tool service. Please ensure that the "
    "VSCode extension is installed and running, and that \"MCP Server\" is "
    "displayed in the status bar."
)

# Served only when there is no cache and the first remote fetch fails.
INITIAL_TOOLS: List[Dict[str, Any]] = [
    {
        "name": "execute_command",
        "description": "Execute a command in a VSCode integrated terminal and return its output.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The command to execute."},
                "customCwd": {"type": "string", "description": "Optional working directory for the command."},
                "modifySomething": {
                    "type": "boolean",
                    "default": True,
                    "description": "Whether the command may modify files or state.",
                },
                "background": {"type": "boolean", "default": False, "description": "Run without waiting for completion."},
                "timeout": {"type": "integer", "default": 300000, "description": "Timeout in milliseconds."},
            },
            "required": ["command"],
        },
    },
    {
        "name": "code_checker",
        "description": "Retrieve diagnostics (errors and warnings) reported by VSCode for the open workspace.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "severityLevel": {
                    "type": "string",
                    "enum": ["Error", "Warning", "Information", "Hint"],
                    "default": "Warning",
                    "description": "Minimum severity to include.",
                },
            },
        },
    },
    {
        "name": "focus_editor",
        "description": "Open a file in the editor and reveal the given range.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "filePath": {"type": "string", "description": "Absolute path of the file to open."},
                "line": {"type": "integer", "minimum": 0, "default": 0},
                "column": {"type": "integer", "minimum": 0, "default": 0},
            },
            "required": ["filePath"],
        },
    },
    {
        "name": "list_debug_sessions",
        "description": "List the debug sessions currently active in the editor.",
        "inputSchema": {
            "type": "object",
            "properties": {},
        },
    },
]
