"""Stdio MCP server that forwards tool requests to the Live backend over HTTP.

Three layers, leaves first:

- ``LiveMcpHttpClient`` speaks the MCP Streamable-HTTP transport with plain
  httpx POSTs (JSON or SSE replies, ``Mcp-Session-Id`` tracking).  It avoids
  the SDK's anyio-based ``ClientSession`` so it can be used from any handler
  task spawned by ``Server.run()``.
- ``BackendConnection`` owns the single outbound client: created lazily on
  first use, flagged disconnected after any failed forward, rebuilt on the
  next request.
- ``LiveStdioBridge`` is the stdio-facing server.  ``tools/list`` degrades to
  an offline catalog and ``tools/call`` degrades to a classified error result;
  neither handler ever raises into the transport.
"""

from __future__ import annotations

import asyncio
import json
import logging

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Protocol

import httpx

from anyio import BrokenResourceError, ClosedResourceError
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    CallToolRequest,
    CallToolResult,
    ErrorData,
    ListToolsRequest,
    ListToolsResult,
    ServerResult,
)

from live_mcp_bridge import __version__
from live_mcp_bridge.config import BridgeConfig
from live_mcp_bridge.executor import classify_failure, failure_response
from live_mcp_bridge.mcp_utils.debug_logger import DebugLogger
from live_mcp_bridge.registry import build_fallback_catalog

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class BridgeError(Exception):
    """Base class for bridge errors."""


class BackendConnectionError(BridgeError):
    """Raised when the backend connection cannot be established or is not available."""

    def __init__(self, url: str, cause: BaseException):
        super().__init__(f"Failed to connect to MCP server at {url}: {cause}")
        self.url = url
        self.cause = cause


# ---------------------------------------------------------------------------
# LiveMcpHttpClient – Streamable-HTTP JSON-RPC client on httpx
# ---------------------------------------------------------------------------

MCP_PROTOCOL_VERSION = "2025-06-18"
CLIENT_NAME = "live-mcp-bridge"

# Timeout for initial transport connect
CONNECT_TIMEOUT = 10.0
# Timeout for backend operations (tool calls, tools/list, ...)
BACKEND_OP_TIMEOUT = 120.0


class LiveMcpHttpClient:
    """Minimal MCP client for the Streamable-HTTP transport.

    Surface: ``connect()``, ``list_tools()``, ``call_tool()``, ``close()``.
    JSON-RPC errors returned by the backend are raised as ``McpError`` so the
    numeric error code survives.
    """

    def __init__(
        self,
        url: str,
        *,
        connect_timeout: float = CONNECT_TIMEOUT,
        request_timeout: float = BACKEND_OP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self._session_id: str | None = None
        self._protocol_version: str | None = None
        self._request_counter = 0
        self._closed = False
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(request_timeout, connect=connect_timeout),
            follow_redirects=True,
            transport=transport,
        )

    # -- helpers -------------------------------------------------------------

    def _next_id(self) -> int:
        self._request_counter += 1
        return self._request_counter

    def _headers(self) -> dict[str, str]:
        h: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if self._session_id:
            h["Mcp-Session-Id"] = self._session_id
        if self._protocol_version:
            h["MCP-Protocol-Version"] = self._protocol_version
        return h

    def _check_url(self) -> None:
        # httpx would only complain once a request is sent; fail before that.
        url = httpx.URL(self.url)
        if url.scheme not in ("http", "https") or not url.host:
            raise httpx.UnsupportedProtocol(
                f"Request URL is missing an 'http://' or 'https://' protocol: {self.url!r}",
            )

    @staticmethod
    def _parse_sse_data(text: str, request_id: int | None = None) -> dict[str, Any] | None:
        """Extract the JSON-RPC response from an SSE body.

        An event's ``data:`` lines are joined before decoding. The backend may
        interleave notifications with the response; prefer the event whose
        ``id`` matches, else the last JSON payload.
        """
        events: list[str] = []
        data_lines: list[str] = []
        for line in text.splitlines():
            if not line.strip():
                if data_lines:
                    events.append("\n".join(data_lines))
                    data_lines = []
                continue
            if line.startswith("data:"):
                value = line[len("data:"):]
                data_lines.append(value[1:] if value.startswith(" ") else value)
        if data_lines:
            events.append("\n".join(data_lines))

        last_payload: dict[str, Any] | None = None
        for raw in events:
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if not isinstance(parsed, dict):
                continue
            if request_id is not None and parsed.get("id") == request_id and ("result" in parsed or "error" in parsed):
                return parsed
            last_payload = parsed
        return last_payload

    @staticmethod
    def _json_or_none(resp: httpx.Response) -> dict[str, Any] | None:
        try:
            body = resp.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    async def _post(self, body: dict[str, Any]) -> dict[str, Any] | None:
        """POST a JSON-RPC envelope and return the parsed response dict (None for 202)."""
        resp = await self._client.post(self.url, json=body, headers=self._headers())

        sid = resp.headers.get("mcp-session-id")
        if sid:
            self._session_id = sid

        if resp.status_code == 202:
            return None

        if resp.is_error:
            payload = self._json_or_none(resp)
            if payload is not None and "error" in payload:
                return payload
            resp.raise_for_status()

        ct = (resp.headers.get("content-type") or "").lower()
        if "text/event-stream" in ct:
            parsed = self._parse_sse_data(resp.text, body.get("id"))
            if parsed is not None:
                return parsed
            raise McpError(
                ErrorData(code=INTERNAL_ERROR, message=f"Unparseable SSE response ({len(resp.text)} bytes)"),
            )
        payload = self._json_or_none(resp)
        if payload is None:
            raise McpError(ErrorData(code=INTERNAL_ERROR, message="Backend returned a non-JSON response"))
        return payload

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a JSON-RPC notification (no id, no response expected)."""
        body: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params:
            body["params"] = params
        await self._post(body)

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send a JSON-RPC request and return the ``result`` dict."""
        body: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": self._next_id()}
        if params is not None:
            body["params"] = params
        response = await self._post(body)
        if response is None:
            raise McpError(ErrorData(code=INTERNAL_ERROR, message=f"No response to {method}"))

        if "error" in response:
            err = response["error"]
            if isinstance(err, dict):
                code = err.get("code")
                raise McpError(
                    ErrorData(
                        code=code if isinstance(code, int) else INTERNAL_ERROR,
                        message=str(err.get("message", err)),
                        data=err.get("data"),
                    ),
                )
            raise McpError(ErrorData(code=INTERNAL_ERROR, message=str(err)))
        result = response.get("result")
        return result if isinstance(result, dict) else {}

    # -- public API ----------------------------------------------------------

    async def connect(self) -> dict[str, Any]:
        """Send ``initialize`` + ``notifications/initialized``."""
        self._check_url()
        result = await self._request(
            "initialize",
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": CLIENT_NAME, "version": __version__},
            },
        )
        negotiated = result.get("protocolVersion")
        self._protocol_version = negotiated if isinstance(negotiated, str) else MCP_PROTOCOL_VERSION
        await self._notify("notifications/initialized")
        return result

    async def list_tools(self) -> ListToolsResult:
        return ListToolsResult.model_validate(await self._request("tools/list"))

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        result = await self._request("tools/call", {"name": name, "arguments": arguments or {}})
        return CallToolResult.model_validate(result)

    async def close(self) -> None:
        """Terminate the HTTP session (best effort) and close the httpx client."""
        if self._closed:
            return
        self._closed = True
        if self._session_id:
            try:
                await self._client.delete(self.url, headers=self._headers())
            except httpx.HTTPError as e:
                logger.debug("Session termination failed for %s: %s", self.url, e)
        await self._client.aclose()


# ---------------------------------------------------------------------------
# BackendConnection – the single lazy, replaceable outbound client
# ---------------------------------------------------------------------------


class McpClient(Protocol):
    async def connect(self) -> Any: ...

    async def list_tools(self) -> ListToolsResult: ...

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult: ...

    async def close(self) -> None: ...


ClientFactory = Callable[[str], McpClient]


class BackendConnection:
    """Owns the outbound client and its connected flag.

    States: disconnected (no client, or the last operation failed) and
    connected.  Nothing outside this class touches the client object.

    Each connected client gets a new generation number.  Requests run
    concurrently, so a failure only disconnects the generation it happened
    on, and a replaced client is closed once its in-flight calls finish.
    """

    def __init__(self, url: str, client_factory: ClientFactory | None = None):
        self.url = url
        self._client_factory: ClientFactory = client_factory or LiveMcpHttpClient
        self._client: McpClient | None = None
        self._connected = False
        self._lock = asyncio.Lock()
        self._generation = 0
        self._in_flight: dict[McpClient, int] = {}
        self._retired: set[McpClient] = set()
        self.connection_attempts = 0

    @property
    def generation(self) -> int:
        return self._generation

    def is_connected(self) -> bool:
        return self._connected

    def mark_disconnected(self, generation: int | None = None) -> None:
        """Force a fresh connection on the next ``ensure_connection()``.

        Args:
            generation: Generation the failure happened on; a stale one is ignored
        """
        if generation is not None and generation != self._generation:
            DebugLogger.debug_connection(self, f"ignoring failure from replaced client (generation {generation})")
            return
        if self._connected:
            DebugLogger.debug_connection(self, f"marked disconnected ({self.url})")
        self._connected = False

    async def ensure_connection(self) -> int:
        """Connect if needed. No-op when already connected; one attempt otherwise.

        Returns:
            The generation of the connected client

        Raises:
            BackendConnectionError: If the backend cannot be reached
        """
        if self._client is not None and self._connected:
            return self._generation

        async with self._lock:
            if self._client is not None and self._connected:
                return self._generation

            await self._discard_client()

            self.connection_attempts += 1
            DebugLogger.debug_connection(self, f"connecting to {self.url} (attempt {self.connection_attempts})")
            client: McpClient | None = None
            try:
                client = self._client_factory(self.url)
                await client.connect()
            except Exception as e:
                self._connected = False
                if client is not None:
                    await self._close_quietly(client)
                raise BackendConnectionError(self.url, e) from e

            self._client = client
            self._generation += 1
            self._connected = True
            logger.info("Backend session established to %s", self.url)
            return self._generation

    def _require_client(self) -> McpClient:
        if self._client is None or not self._connected:
            raise BackendConnectionError(self.url, RuntimeError("not connected"))
        return self._client

    @asynccontextmanager
    async def _lease(self) -> AsyncIterator[McpClient]:
        client = self._require_client()
        self._in_flight[client] = self._in_flight.get(client, 0) + 1
        try:
            yield client
        finally:
            remaining = self._in_flight[client] - 1
            if remaining:
                self._in_flight[client] = remaining
            else:
                del self._in_flight[client]
                if client in self._retired:
                    self._retired.discard(client)
                    await self._close_quietly(client)

    async def list_tools(self) -> ListToolsResult:
        async with self._lease() as client:
            return await client.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> CallToolResult:
        async with self._lease() as client:
            return await client.call_tool(name, arguments)

    async def _close_quietly(self, client: McpClient) -> None:
        try:
            await client.close()
        except Exception as e:
            logger.warning("Error closing backend client for %s: %s: %s", self.url, type(e).__name__, e)

    async def _discard_client(self) -> None:
        client, self._client = self._client, None
        self._connected = False
        if client is None:
            return
        if self._in_flight.get(client):
            # Closed by the last call still using it
            self._retired.add(client)
        else:
            await self._close_quietly(client)

    async def close(self) -> None:
        """Close and drop every client, in-flight or not. Errors are logged, never raised."""
        await self._discard_client()
        retired, self._retired = self._retired, set()
        for client in retired:
            await self._close_quietly(client)


# ---------------------------------------------------------------------------
# LiveStdioBridge – stdio-facing MCP server
# ---------------------------------------------------------------------------


class LiveStdioBridge:
    """MCP server on stdio whose tool requests are answered by the HTTP backend."""

    def __init__(self, config: BridgeConfig | None = None, *, client_factory: ClientFactory | None = None):
        """Initialize the stdio bridge.

        Args:
            config: Bridge configuration (defaults to the environment)
            client_factory: Builds an outbound client for a URL (tests inject fakes)
        """
        self.config: BridgeConfig = config if config is not None else BridgeConfig.from_env()
        self.url: str = self.config.backend_url

        if client_factory is None:
            client_factory = partial(
                LiveMcpHttpClient,
                connect_timeout=self.config.connect_timeout,
                request_timeout=self.config.request_timeout,
            )
        self.connection = BackendConnection(self.url, client_factory)
        self.fallback_catalog: ListToolsResult = build_fallback_catalog(self.config.small_model_mode)

        self.server: Server = Server(CLIENT_NAME, version=__version__)
        self._shutdown_done = False

        self._register_handlers()

    async def handle_list_tools(self) -> ListToolsResult:
        """Forward ``tools/list``; fall back to the offline catalog on any failure."""
        generation: int | None = None
        try:
            generation = await self.connection.ensure_connection()
            return await self.connection.list_tools()
        except Exception as e:
            self.connection.mark_disconnected(generation)
            logger.debug("tools/list using fallback catalog: %s: %s", type(e).__name__, e)
            return self.fallback_catalog

    async def handle_call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        """Forward ``tools/call``; any failure becomes an ``isError`` result."""
        arguments = arguments or {}
        DebugLogger.debug_tool_execution(self, name, "START")
        generation: int | None = None
        try:
            generation = await self.connection.ensure_connection()
            result = await self.connection.call_tool(name, arguments)
        except Exception as e:
            self.connection.mark_disconnected(generation)
            logger.debug("tools/call %s failed: %s: %s", name, type(e).__name__, e)
            DebugLogger.debug_tool_execution(self, name, "ERROR", type(e).__name__)
            return failure_response(classify_failure(e), self.config.server_origin)
        DebugLogger.debug_tool_execution(self, name, "SUCCESS")
        return result

    def _register_handlers(self) -> None:
        """Register the two forwarded methods on the low-level server.

        Registered as raw request handlers rather than through the
        ``list_tools``/``call_tool`` decorators: the decorators rewrap list
        results and look up cached tool definitions before each call, which
        would turn one forwarded call into two backend round trips.
        """

        async def list_tools(_req: ListToolsRequest) -> ServerResult:
            return ServerResult(await self.handle_list_tools())

        async def call_tool(req: CallToolRequest) -> ServerResult:
            return ServerResult(await self.handle_call_tool(req.params.name, req.params.arguments))

        self.server.request_handlers[ListToolsRequest] = list_tools
        self.server.request_handlers[CallToolRequest] = call_tool

    async def run(self) -> None:
        """Serve MCP on stdio until the host closes the stream.

        The backend connection is established lazily by the first request.
        """
        logger.info("Bridge ready - stdio transport active, forwarding to %s", self.url)
        try:
            async with stdio_server() as (stdio_read, stdio_write):
                await self.server.run(
                    stdio_read,
                    stdio_write,
                    self.server.create_initialization_options(),
                )
        except ClosedResourceError:
            logger.info("Client disconnected")
        except BrokenResourceError:
            logger.info("Client connection broken - disconnecting")
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Close the outbound connection. Safe to call more than once."""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        try:
            await self.connection.close()
        except Exception as e:
            logger.warning("Error during bridge shutdown: %s: %s", type(e).__name__, e)
