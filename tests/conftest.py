import json
from typing import Any, Dict, List, Optional

import pytest
import requests


def make_response(
    status_code: int = 200,
    payload: Any = None,
    text: Optional[str] = None,
    url: str = "http://localhost:60100",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    response.url = url
    response.headers["Content-Type"] = "application/json"
    return response


def rpc_result(result: Any, msg_id: int = 1) -> requests.Response:
    return make_response(200, {"jsonrpc": "2.0", "id": msg_id, "result": result})


class StubSession:
    """Replays queued outcomes (responses or exceptions) and records each POST."""

    def __init__(self, outcomes: Optional[List[Any]] = None, default: Any = None):
        self.outcomes = list(outcomes or [])
        self.default = default
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, data: Any = None, headers: Any = None, timeout: Any = None):
        body = data.decode("utf-8") if isinstance(data, bytes) else data
        self.calls.append({"url": url, "body": body, "headers": headers, "timeout": timeout})
        result = self.outcomes.pop(0) if self.outcomes else self.default
        if result is None:
            raise AssertionError(f"Unexpected POST to {url}")
        if isinstance(result, Exception):
            raise result
        return result

    def bodies(self) -> List[Any]:
        return [json.loads(call["body"]) if call["body"] else None for call in self.calls]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def rpc_result_factory():
    return rpc_result


@pytest.fixture
def stub_session_cls():
    return StubSession


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def cache_file(tmp_path):
    return tmp_path / "cache" / "tools-list-cache.json"
