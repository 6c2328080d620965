import re
import sys
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Dict, Any, BinaryIO, TextIO

from mcp_relay.version import __version__

from .definitions import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_NOT_FOUND,
    METHOD_PING,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
    METHOD_TOOLS_LIST_CHANGED,
    SERVER_BUSY,
    SERVER_NAME,
    SUPPORTED_PROTOCOL_VERSIONS,
)
from .handlers import RelayHandlers, RelayResponse

logger = logging.getLogger("McpRelay.mcp.server")

_BACKGROUND_METHODS = (METHOD_TOOLS_LIST, METHOD_TOOLS_CALL)

_HEADER_LINE = re.compile(rb"^([A-Za-z][A-Za-z0-9-]*)\s*:\s*(.*)$")


def _content_length(headers: Dict[bytes, bytes]) -> Optional[int]:
    raw = headers.get(b"content-length")
    if raw is None:
        return None
    try:
        length = int(raw)
    except ValueError:
        return None
    return length if length > 0 else None


def negotiate_protocol_version(requested: Optional[str]) -> Optional[str]:
    """Return the requested version when supported, the newest when omitted."""
    if not requested:
        return SUPPORTED_PROTOCOL_VERSIONS[0]
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return None


class McpServer:
    """
    Handles JSON-RPC communication over stdio with thread-pooled dispatching.

    tools/list and tools/call run on the executor, so a request waiting out
    a retry interval never blocks reading the next message.
    """
    def __init__(
        self,
        handlers: RelayHandlers,
        output: Optional[TextIO] = None,
        max_workers: int = 8,
        queue_limit: Optional[int] = None,
    ):
        self.handlers = handlers
        self.output = output
        self.max_workers = max(1, max_workers)
        self.queue_limit = max(self.max_workers, queue_limit or self.max_workers * 8)

        self.transport_closed = threading.Event()
        self.write_lock = threading.Lock()
        self.initialized = False
        self.protocol_version = SUPPORTED_PROTOCOL_VERSIONS[0]

        # Workers are spawned lazily by the pool itself on first submit.
        self.executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="mcp-relay-dispatch",
        )
        self._slots = threading.BoundedSemaphore(self.queue_limit)

    def stop(self, wait: bool = False) -> None:
        """
        Shut down the dispatcher and close the transport.

        With ``wait=True`` every queued and running request finishes and its
        reply is written before the transport closes; forwarded calls are
        never cancelled. ``wait=False`` drops pending work immediately.
        """
        if wait:
            self.executor.shutdown(wait=True)
            self.transport_closed.set()
            return
        self.transport_closed.set()
        self.executor.shutdown(wait=False, cancel_futures=True)

    # --- Output ---

    def send_rpc(self, message: Dict[str, Any]) -> None:
        """Serialize and send a JSON-RPC message to stdout."""
        if self.transport_closed.is_set():
            return

        serialized = json.dumps(message)
        with self.write_lock:
            if self.transport_closed.is_set():
                return
            stream = self.output or sys.stdout
            try:
                stream.write(serialized + "\n")
                stream.flush()
            except (BrokenPipeError, OSError) as exc:
                self.transport_closed.set()
                logger.warning("MCP stdio transport closed while sending: %s", exc)

    def send_result(self, msg_id: Any, result: Any) -> None:
        self.send_rpc({"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result})

    def send_error(self, msg_id: Any, code: int, message: str) -> None:
        """Convenience method for sending JSON-RPC errors."""
        self.send_rpc({
            "jsonrpc": JSONRPC_VERSION,
            "id": msg_id,
            "error": {
                "code": code,
                "message": message,
            },
        })

    def notify_tools_changed(self, *_args: Any) -> None:
        """Tell the local caller to re-list tools."""
        if not self.initialized:
            return
        self.send_rpc({"jsonrpc": JSONRPC_VERSION, "method": METHOD_TOOLS_LIST_CHANGED})

    # --- Input ---

    def read_message(self, stream: BinaryIO) -> Optional[Dict[str, Any]]:
        """Return the next JSON-RPC object from ``stream``, or None at EOF."""
        while True:
            frame = self._read_frame(stream)
            if frame is None:
                return None
            try:
                # ValueError covers both bad JSON and bad UTF-8.
                msg = json.loads(frame)
            except ValueError:
                logger.debug("Skipping undecodable stdio frame (%d bytes)", len(frame))
                continue
            if isinstance(msg, dict):
                return msg
            logger.debug("Skipping non-object JSON-RPC frame")

    def _read_frame(self, stream: BinaryIO) -> Optional[bytes]:
        """
        Return the raw bytes of the next message.

        A line starting with ``{`` or ``[`` is a newline-delimited message.
        A ``Content-*`` header line opens an LSP-style header block (headers
        in any order, ended by a blank line) followed by exactly
        Content-Length bytes of body. Anything else is noise and skipped.
        """
        while True:
            line = stream.readline()
            if not line:
                return None
            stripped = line.strip()
            if not stripped:
                continue
            if stripped[:1] in (b"{", b"["):
                return stripped

            header = _HEADER_LINE.match(stripped)
            if header is None or not header.group(1).lower().startswith(b"content-"):
                logger.debug("Skipping non-JSON line on stdio transport")
                continue

            headers = self._read_header_block(stream, header)
            if headers is None:
                return None
            length = _content_length(headers)
            if length is None:
                logger.warning("Invalid or missing Content-Length in headers: %r", headers)
                continue

            body = stream.read(length)
            if len(body) != length:
                logger.warning("Truncated framed payload (%d of %d bytes)", len(body), length)
                return None
            return body

    def _read_header_block(self, stream: BinaryIO, first: "re.Match[bytes]") -> Optional[Dict[bytes, bytes]]:
        headers = {first.group(1).lower(): first.group(2)}
        while True:
            line = stream.readline()
            if not line:
                return None
            stripped = line.strip()
            if not stripped:
                return headers
            match = _HEADER_LINE.match(stripped)
            if match is not None:
                headers[match.group(1).lower()] = match.group(2)

    def serve(self, stream: BinaryIO) -> None:
        """Read and dispatch messages until EOF or transport close."""
        while not self.transport_closed.is_set():
            try:
                msg = self.read_message(stream)
            except OSError as e:
                logger.error("Failed reading from stdio transport: %s", e)
                break
            if msg is None:
                break
            try:
                if msg.get("method") in _BACKGROUND_METHODS:
                    self.submit_dispatch(msg)
                else:
                    self.dispatch_guarded(msg)
            except Exception as e:
                logger.error("Loop error: %s", e)

    # --- Dispatch ---

    def submit_dispatch(self, msg: Dict[str, Any]) -> bool:
        """
        Hand a forwarded request to the pool. A full pool answers -32001
        right away instead of queueing without bound.
        """
        if not self._slots.acquire(blocking=False):
            self._reject_busy(msg)
            return False
        try:
            self.executor.submit(self._run_in_slot, msg)
        except RuntimeError:
            # Pool already shut down.
            self._slots.release()
            raise
        return True

    def _run_in_slot(self, msg: Dict[str, Any]) -> None:
        try:
            self.dispatch_guarded(msg)
        finally:
            self._slots.release()

    def _reject_busy(self, msg: Dict[str, Any]) -> None:
        logger.warning("Dispatch pool saturated (%d slots); rejecting %s", self.queue_limit, msg.get("method"))
        if msg.get("id") is not None:
            self.send_error(msg["id"], SERVER_BUSY, "Server busy: dispatch queue is saturated.")

    def dispatch_guarded(self, msg: Dict[str, Any]) -> None:
        try:
            self.dispatch(msg)
        except Exception:
            logger.exception("Unexpected error during RPC dispatch")
            msg_id = msg.get("id")
            if msg_id is not None and not self.transport_closed.is_set():
                self.send_error(msg_id, INTERNAL_ERROR, "Internal error during request dispatch.")

    def dispatch(self, msg: Dict[str, Any]) -> None:
        """
        Handle a single parsed JSON-RPC message.

        - Unknown request methods (with id) return -32601.
        - Unknown notifications (no id) and client responses are ignored.
        """
        msg_id = msg.get("id")
        method = msg.get("method")
        params = msg.get("params")

        if not isinstance(method, str):
            if msg_id is not None and "result" not in msg and "error" not in msg:
                self.send_error(msg_id, INVALID_REQUEST, "Invalid Request: missing method")
            return

        if params is not None and not isinstance(params, dict):
            if msg_id is not None:
                self.send_error(msg_id, INVALID_PARAMS, "Invalid params: params must be an object")
            return

        if method == METHOD_INITIALIZE:
            self.handle_initialize(msg_id, params or {})
            return

        if method == METHOD_INITIALIZED:
            self.initialized = True
            logger.info("Client initialized connection")
            return

        if msg_id is None:
            logger.debug("Ignoring notification method: %s", method)
            return

        if method == METHOD_PING:
            self.send_result(msg_id, {})
            return

        if method == METHOD_TOOLS_LIST:
            self.send_result(msg_id, self.handlers.list_tools(params))
            return

        if method == METHOD_TOOLS_CALL:
            if not isinstance(params, dict) or not isinstance(params.get("name"), str):
                self.send_error(msg_id, INVALID_PARAMS, "Invalid params: tools/call requires a string 'name'")
                return
            self._send_relay_response(msg_id, self.handlers.call_tool(method, params))
            return

        self.send_error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def handle_initialize(self, msg_id: Any, params: Dict[str, Any]) -> None:
        """Handle protocol negotiation."""
        requested = params.get("protocolVersion")
        negotiated = negotiate_protocol_version(requested)
        if negotiated is None:
            self.send_error(
                msg_id,
                INVALID_PARAMS,
                f"Unsupported protocol version: {requested}. "
                f"Supported versions: {', '.join(SUPPORTED_PROTOCOL_VERSIONS)}",
            )
            return
        self.protocol_version = negotiated
        self.send_result(msg_id, {
            "protocolVersion": negotiated,
            "capabilities": {
                "tools": {
                    "listChanged": True
                },
            },
            "serverInfo": {
                "name": SERVER_NAME,
                "version": __version__
            },
        })

    def _send_relay_response(self, msg_id: Any, response: RelayResponse) -> None:
        if response.error is not None:
            self.send_rpc({"jsonrpc": JSONRPC_VERSION, "id": msg_id, "error": response.error})
            return
        self.send_result(msg_id, response.result)
