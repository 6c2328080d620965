"""Tests for mcp_relay.mcp.handlers: list-tools and call-tool handlers."""

import pytest
import requests

from mcp_relay.core.types import parse_tools, tools_to_wire
from mcp_relay.mcp.definitions import INITIAL_TOOLS, JSON_SCHEMA_2020_12, REMOTE_UNAVAILABLE_MESSAGE
from mcp_relay.mcp.handlers import RelayHandlers, RelayResponse, extract_result
from mcp_relay.mcp.requests import RetryingClient
from mcp_relay.mcp.schema import normalize_tools
from mcp_relay.errors import RemoteClientError, RemoteProtocolError
from mcp_relay.store.tool_cache import ToolCacheStore

SERVER_URL = "http://localhost:60100"

REMOTE_TOOLS = [
    {"name": "execute_command", "inputSchema": {"$schema": "http://json-schema.org/draft-07/schema#", "type": "object"}},
    {"name": "code_checker"},
]

CACHED_TOOLS = [
    {"name": "cached_only", "inputSchema": {"$schema": JSON_SCHEMA_2020_12, "type": "object"}},
]


def _handlers(session, cache_file):
    client = RetryingClient(session=session, sleep_fn=lambda _s: None)
    return RelayHandlers(SERVER_URL, client, ToolCacheStore(cache_file))


def _seed_cache(cache_file, tools=CACHED_TOOLS):
    ToolCacheStore(cache_file).save(normalize_tools(parse_tools(tools)))


class TestListTools:
    def test_fresh_list_is_normalized_returned_and_cached(self, stub_session_cls, rpc_result_factory, cache_file):
        session = stub_session_cls([rpc_result_factory({"tools": REMOTE_TOOLS})])
        handlers = _handlers(session, cache_file)

        result = handlers.list_tools({"cursor": "abc"})

        names = [tool["name"] for tool in result["tools"]]
        assert names == ["execute_command", "code_checker"]
        assert all(tool["inputSchema"]["$schema"] == JSON_SCHEMA_2020_12 for tool in result["tools"])
        assert tools_to_wire(ToolCacheStore(cache_file).load()) == result["tools"]

    def test_request_params_are_passed_through(self, stub_session_cls, rpc_result_factory, cache_file):
        session = stub_session_cls([rpc_result_factory({"tools": []})])
        _handlers(session, cache_file).list_tools({"cursor": "page-2"})

        body = session.bodies()[0]
        assert session.calls[0]["url"] == SERVER_URL
        assert body["method"] == "tools/list"
        assert body["params"] == {"cursor": "page-2"}

    def test_non_string_description_does_not_trigger_fallback(self, stub_session_cls, rpc_result_factory, cache_file):
        _seed_cache(cache_file)
        tools = [{"name": "odd", "description": ["line one", "line two"]}, {"name": "plain"}]
        session = stub_session_cls([rpc_result_factory({"tools": tools})])

        result = _handlers(session, cache_file).list_tools({})

        assert [tool["name"] for tool in result["tools"]] == ["odd", "plain"]
        assert result["tools"][0]["description"] == ["line one", "line two"]

    def test_fetch_failure_serves_cache(self, stub_session_cls, cache_file):
        _seed_cache(cache_file)
        session = stub_session_cls(default=requests.ConnectionError("refused"))

        result = _handlers(session, cache_file).list_tools({})

        assert [tool["name"] for tool in result["tools"]] == ["cached_only"]
        assert len(session.calls) == 3

    def test_no_cache_and_fetch_failure_serves_seed(self, stub_session_cls, response_factory, cache_file):
        session = stub_session_cls(default=response_factory(502, text="bad gateway"))

        result = _handlers(session, cache_file).list_tools({})

        assert [tool["name"] for tool in result["tools"]] == [tool["name"] for tool in INITIAL_TOOLS]
        assert not cache_file.exists()

    def test_remote_error_payload_falls_back(self, stub_session_cls, response_factory, cache_file):
        _seed_cache(cache_file)
        error = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "unknown"}}
        session = stub_session_cls([response_factory(400, error)])

        result = _handlers(session, cache_file).list_tools({})

        assert [tool["name"] for tool in result["tools"]] == ["cached_only"]
        assert len(session.calls) == 1

    def test_malformed_tools_fall_back(self, stub_session_cls, rpc_result_factory, cache_file):
        _seed_cache(cache_file)
        session = stub_session_cls([rpc_result_factory({"tools": "not-a-list"})])

        result = _handlers(session, cache_file).list_tools({})

        assert [tool["name"] for tool in result["tools"]] == ["cached_only"]

    def test_fresh_and_cached_lists_are_never_merged(self, stub_session_cls, rpc_result_factory, cache_file):
        _seed_cache(cache_file)
        session = stub_session_cls([rpc_result_factory({"tools": REMOTE_TOOLS})])

        result = _handlers(session, cache_file).list_tools({})

        assert "cached_only" not in [tool["name"] for tool in result["tools"]]

    def test_cache_write_failure_does_not_change_response(self, stub_session_cls, rpc_result_factory, cache_file, monkeypatch):
        session = stub_session_cls([rpc_result_factory({"tools": REMOTE_TOOLS})])
        handlers = _handlers(session, cache_file)
        monkeypatch.setattr(handlers.cache, "_write_atomic", _raise_os_error)

        result = handlers.list_tools({})

        assert [tool["name"] for tool in result["tools"]] == ["execute_command", "code_checker"]


def _raise_os_error(*_args, **_kwargs):
    raise OSError("disk full")


class TestCallTool:
    def test_success_returns_remote_result_unchanged(self, stub_session_cls, rpc_result_factory, cache_file):
        remote_result = {"content": [{"type": "text", "text": "done"}], "isError": False, "_meta": {"x": 1}}
        session = stub_session_cls([rpc_result_factory(remote_result)])
        params = {"name": "execute_command", "arguments": {"command": "ls"}}

        response = _handlers(session, cache_file).call_tool("tools/call", params)

        assert response == RelayResponse(result=remote_result)
        body = session.bodies()[0]
        assert body["method"] == "tools/call"
        assert body["params"] == params

    def test_each_call_gets_a_fresh_correlation_id(self, stub_session_cls, rpc_result_factory, cache_file, monkeypatch):
        ids = iter([11, 22])
        monkeypatch.setattr("mcp_relay.mcp.requests.new_request_id", lambda: next(ids))
        session = stub_session_cls(default=rpc_result_factory({}))
        handlers = _handlers(session, cache_file)

        handlers.call_tool("tools/call", {"name": "a"})
        handlers.call_tool("tools/call", {"name": "b"})

        assert [body["id"] for body in session.bodies()] == [11, 22]

    def test_remote_error_payload_is_passed_through(self, stub_session_cls, response_factory, cache_file):
        error = {"code": -32602, "message": "Unknown tool: nope"}
        session = stub_session_cls([response_factory(200, {"jsonrpc": "2.0", "id": 3, "error": error})])

        response = _handlers(session, cache_file).call_tool("tools/call", {"name": "nope"})

        assert response.result is None
        assert response.error == error

    @pytest.mark.parametrize(
        "outcome",
        [
            requests.ConnectionError("refused"),
            requests.Timeout("slow"),
            "server_error",
            "invalid_json",
            "no_result",
            "not_an_object",
        ],
    )
    def test_failures_resolve_to_error_result(self, outcome, stub_session_cls, response_factory, cache_file):
        responses = {
            "server_error": response_factory(500, text="boom"),
            "invalid_json": response_factory(200, text="<html>"),
            "no_result": response_factory(200, {"jsonrpc": "2.0", "id": 1}),
            "not_an_object": response_factory(200, [1, 2, 3]),
        }
        session = stub_session_cls(default=responses.get(outcome, outcome))

        response = _handlers(session, cache_file).call_tool("tools/call", {"name": "x"})

        assert response.error is None
        assert response.result["isError"] is True
        assert response.result["content"][0]["type"] == "text"
        assert response.result["content"][0]["text"] == REMOTE_UNAVAILABLE_MESSAGE

    def test_unexpected_exception_never_escapes(self, cache_file):
        class ExplodingClient:
            def send(self, *_args, **_kwargs):
                raise KeyError("surprise")

        handlers = RelayHandlers(SERVER_URL, ExplodingClient(), ToolCacheStore(cache_file))
        response = handlers.call_tool("tools/call", {"name": "x"})
        assert response.result["isError"] is True


class TestExtractResult:
    def test_returns_result(self):
        assert extract_result({"jsonrpc": "2.0", "id": 1, "result": {"a": 1}}) == {"a": 1}

    def test_error_payload_raises_client_error(self):
        with pytest.raises(RemoteClientError) as excinfo:
            extract_result({"error": {"code": -32000, "message": "bad"}})
        assert excinfo.value.code == -32000
        assert excinfo.value.payload == {"code": -32000, "message": "bad"}

    def test_missing_result_raises_protocol_error(self):
        with pytest.raises(RemoteProtocolError):
            extract_result({"jsonrpc": "2.0", "id": 1})

    def test_non_object_raises_protocol_error(self):
        with pytest.raises(RemoteProtocolError):
            extract_result("nope")
