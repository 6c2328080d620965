import json
import time
import random
import logging
import requests
from typing import Any, Callable, Dict, Optional

from mcp_relay.core.config import DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_INTERVAL_SEC
from mcp_relay.errors import (
    RelayTransportError,
    RemoteProtocolError,
    RemoteServerError,
    RetryExhaustedError,
)
from .definitions import JSONRPC_VERSION

logger = logging.getLogger("McpRelay.mcp.requests")

_SERVER_ERROR_THRESHOLD = 500


def new_request_id() -> int:
    """Correlation id; only needs to disambiguate concurrent in-flight calls."""
    return random.randint(0, 999_999)


def build_envelope(method: str, params: Optional[Dict[str, Any]]) -> str:
    """Serialize a JSON-RPC request envelope with a fresh id."""
    return json.dumps({
        "jsonrpc": JSONRPC_VERSION,
        "method": method,
        "params": params if params is not None else {},
        "id": new_request_id(),
    })


class RetryingClient:
    """
    Sends one logical POST with a fixed-delay retry policy.

    Connection failures and 5xx responses are retried; anything below 500
    (including 4xx) is handed back as a completed exchange for the caller to
    interpret. There is no backoff or jitter: every retry waits the same
    interval.

    Without an injected session every attempt goes through the module-level
    ``requests.post``, so the dispatch pool and the refresh thread never
    share a ``requests.Session`` (which is not guaranteed thread-safe).
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_interval_sec: float = DEFAULT_RETRY_INTERVAL_SEC,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.retry_interval_sec = max(0.0, float(retry_interval_sec))
        self.timeout = timeout
        self.session = session
        self._sleep = sleep_fn

    def send(self, endpoint: str, payload: str, parse_json: bool = True) -> Any:
        """
        POST ``payload`` to ``endpoint`` and return the decoded JSON body.

        With ``parse_json=False`` the body is ignored and the response object
        is returned. Raises RetryExhaustedError once every attempt failed.
        """
        last_error: Optional[Exception] = None
        for attempt in range(self.max_attempts):
            if attempt > 0:
                logger.warning("Retry attempt %d/%d for %s", attempt + 1, self.max_attempts, endpoint)
                self._sleep(self.retry_interval_sec)
            try:
                response = (self.session or requests).post(
                    endpoint,
                    data=payload.encode("utf-8"),
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                last_error = RelayTransportError(str(e))
                logger.warning(
                    "Connection failed (attempt %d/%d): %s", attempt + 1, self.max_attempts, e
                )
                continue

            if response.status_code >= _SERVER_ERROR_THRESHOLD:
                last_error = RemoteServerError(response.status_code, response.text)
                logger.warning(
                    "Server error (attempt %d/%d): status %d",
                    attempt + 1,
                    self.max_attempts,
                    response.status_code,
                )
                continue

            if not parse_json:
                return response
            try:
                return response.json()
            except ValueError as e:
                last_error = RemoteProtocolError(f"Invalid JSON response (status {response.status_code}): {e}")
                logger.warning(
                    "Undecodable response (attempt %d/%d): %s", attempt + 1, self.max_attempts, e
                )

        raise RetryExhaustedError(last_error)

    def close(self) -> None:
        if self.session is not None:
            self.session.close()
