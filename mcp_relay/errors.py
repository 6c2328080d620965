"""
Relay error taxonomy.
"""

from __future__ import annotations

from typing import Any, Optional


class RelayError(RuntimeError):
    """Base class for relay errors."""


class RelayTransportError(RelayError):
    """Raised when the remote endpoint cannot be reached at the connection level."""


class RemoteServerError(RelayError):
    """Raised when the remote endpoint answers with a server-error status (5xx)."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Request failed with status {status_code}: {body}")


class RemoteClientError(RelayError):
    """Raised when a response envelope carries a JSON-RPC error payload."""

    def __init__(
        self,
        detail: str,
        *,
        code: Optional[int] = None,
        payload: Optional[Any] = None,
    ) -> None:
        self.code = code
        self.payload = payload
        code_hint = f" (code={code})" if code is not None else ""
        super().__init__(f"{detail}{code_hint}")


class RemoteProtocolError(RelayError):
    """Raised when a response body cannot be decoded into the expected shape."""


class RetryExhaustedError(RelayError):
    """Raised once every attempt of a single logical request has failed."""

    def __init__(self, last_error: Optional[BaseException]) -> None:
        self.last_error = last_error
        message = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"All retry attempts failed: {message}")


class CacheError(RelayError):
    """Raised when the tool-list cache cannot be read or written."""


class NotificationError(RelayError):
    """Raised when the tools-updated notification cannot be delivered."""
