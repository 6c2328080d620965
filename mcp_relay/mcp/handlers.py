import logging
from typing import Any, Dict, List, NamedTuple, Optional

from mcp_relay.core.types import ToolDescriptor, parse_tools, tools_to_wire
from mcp_relay.errors import RelayError, RemoteClientError, RemoteProtocolError
from mcp_relay.store.tool_cache import ToolCacheStore

from .definitions import INITIAL_TOOLS, METHOD_TOOLS_LIST, REMOTE_UNAVAILABLE_MESSAGE
from .requests import RetryingClient, build_envelope
from .schema import normalize_tools

logger = logging.getLogger("McpRelay.mcp.handlers")


class RelayResponse(NamedTuple):
    """Outcome of a forwarded call: exactly one of result / error is set."""
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


def extract_result(response: Any) -> Any:
    """Unwrap a JSON-RPC response envelope, raising on error payloads."""
    if not isinstance(response, dict):
        raise RemoteProtocolError(f"Expected a JSON-RPC object, got {type(response).__name__}")
    error = response.get("error")
    if error is not None:
        if isinstance(error, dict):
            raise RemoteClientError(
                str(error.get("message", "Remote error")),
                code=error.get("code"),
                payload=error,
            )
        raise RemoteClientError(str(error), payload=error)
    if "result" not in response:
        raise RemoteProtocolError("Response envelope has neither result nor error")
    return response["result"]


def communication_error_result() -> Dict[str, Any]:
    return {
        "isError": True,
        "content": [{
            "type": "text",
            "text": REMOTE_UNAVAILABLE_MESSAGE,
        }],
    }


class RelayHandlers:
    """
    The two caller-facing operations. They share no mutable state except
    the tool cache.
    """

    def __init__(
        self,
        server_url: str,
        client: RetryingClient,
        cache: ToolCacheStore,
        seed_tools: Optional[List[Dict[str, Any]]] = None,
    ):
        self.server_url = server_url
        self.client = client
        self.cache = cache
        self._seed_tools = seed_tools if seed_tools is not None else INITIAL_TOOLS

    def seed_tools(self) -> List[ToolDescriptor]:
        return normalize_tools(parse_tools(self._seed_tools))

    def fetch_tools(self, params: Optional[Dict[str, Any]] = None) -> List[ToolDescriptor]:
        """Fetch and normalize the authoritative tool list. Raises RelayError."""
        response = self.client.send(self.server_url, build_envelope(METHOD_TOOLS_LIST, params))
        result = extract_result(response)
        if not isinstance(result, dict):
            raise RemoteProtocolError("tools/list result is not an object")
        return normalize_tools(parse_tools(result.get("tools")))

    def list_tools(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Serve the fresh list when the remote answers, otherwise the cached
        list, otherwise the bundled seed list. Never raises for remote or
        cache failures.
        """
        fallback = self.cache.load()
        if fallback is None:
            fallback = self.seed_tools()

        try:
            tools = self.fetch_tools(params)
        except RelayError as e:
            logger.warning("Failed to fetch tools list: %s", e)
            return {"tools": tools_to_wire(fallback)}

        self.cache.save(tools)
        return {"tools": tools_to_wire(tools)}

    def call_tool(self, method: str, params: Optional[Dict[str, Any]] = None) -> RelayResponse:
        """
        Forward the call verbatim. Remote error payloads are passed through;
        every other failure becomes a caller-visible error result.
        """
        try:
            response = self.client.send(self.server_url, build_envelope(method, params))
            return RelayResponse(result=extract_result(response))
        except RemoteClientError as e:
            logger.info("Remote tool call returned an error: %s", e)
            payload = e.payload if isinstance(e.payload, dict) else {"code": -32000, "message": str(e)}
            return RelayResponse(error=payload)
        except Exception as e:
            logger.warning("Failed to call tool: %s", e)
            return RelayResponse(result=communication_error_result())
