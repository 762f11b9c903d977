"""Test helper utilities for the Live MCP bridge tests.

Provides:
- Fake outbound MCP clients and a recording client factory
- Helpers for building the exception chains the bridge sees in production
- Shape assertions for advertised tools and backend URLs
"""

from __future__ import annotations

import asyncio

from typing import Any
from urllib.parse import urlparse

from mcp.types import CallToolResult, ListToolsResult, TextContent, Tool

from live_mcp_bridge.registry import TOOL_DEFINITIONS, ToolDefinition


def get_tool_definition(name: str) -> ToolDefinition | None:
    for defn in TOOL_DEFINITIONS:
        if defn.name == name:
            return defn
    return None


def sample_list_result() -> ListToolsResult:
    return ListToolsResult(
        tools=[
            Tool(
                name="ppal-connect",
                title="Connect to Ableton Live",
                description="Backend description",
                inputSchema={"type": "object", "properties": {}},
            ),
        ],
        nextCursor="page-2",
    )


def sample_call_result(*, is_error: bool = False) -> CallToolResult:
    return CallToolResult(
        content=[TextContent(type="text", text='{"tempo": 120}')],
        structuredContent={"tempo": 120},
        isError=is_error,
    )


class FakeMcpClient:
    """Stands in for ``LiveMcpHttpClient``; records every call."""

    def __init__(
        self,
        url: str,
        *,
        connect_error: BaseException | None = None,
        list_result: ListToolsResult | None = None,
        list_error: BaseException | None = None,
        call_result: CallToolResult | None = None,
        call_error: BaseException | None = None,
        close_error: BaseException | None = None,
        tool_errors: dict[str, BaseException] | None = None,
        call_gates: dict[str, asyncio.Event] | None = None,
    ):
        self.url = url
        self.connect_error = connect_error
        self.list_result = list_result if list_result is not None else sample_list_result()
        self.list_error = list_error
        self.call_result = call_result if call_result is not None else sample_call_result()
        self.call_error = call_error
        self.close_error = close_error
        self.tool_errors = tool_errors or {}
        self.call_gates = call_gates or {}
        self.connect_calls = 0
        self.close_calls = 0
        self.calls: list[tuple[str, dict[str, Any] | None]] = []

    async def connect(self) -> dict[str, Any]:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        return {"protocolVersion": "2025-06-18"}

    async def list_tools(self) -> ListToolsResult:
        if self.list_error is not None:
            raise self.list_error
        return self.list_result

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        self.calls.append((name, arguments))
        gate = self.call_gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.tool_errors:
            raise self.tool_errors[name]
        if self.call_error is not None:
            raise self.call_error
        return self.call_result

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeClientFactory:
    """Client factory that builds ``FakeMcpClient``s with the current ``behaviour``.

    Mutate ``behaviour`` between requests to change what the next client does.
    """

    def __init__(self, **behaviour: Any):
        self.behaviour: dict[str, Any] = behaviour
        self.clients: list[FakeMcpClient] = []

    def __call__(self, url: str) -> FakeMcpClient:
        client = FakeMcpClient(url, **self.behaviour)
        self.clients.append(client)
        return client


def chained(outer_factory, cause: BaseException) -> BaseException:
    """Raise ``cause``, wrap it with ``outer_factory(cause)`` via ``raise ... from``, return the outer error."""
    try:
        try:
            raise cause
        except BaseException as inner:
            raise outer_factory(inner) from inner
    except BaseException as outer:
        return outer


def assert_url_shape(url: str, *, scheme: str, host: str, path: str) -> None:
    parsed = urlparse(url)
    assert parsed.scheme == scheme
    assert parsed.netloc == host
    assert parsed.path == path
    assert parsed.query == ""
    assert parsed.fragment == ""
    assert url == f"{scheme}://{host}{path}"
    assert " " not in url


def assert_tool_schema_invariants(tool: Any, *, expected_name: str | None = None) -> None:
    assert tool is not None
    assert isinstance(tool.name, str)
    assert tool.name.strip() == tool.name
    assert tool.name != ""
    assert tool.name.lower() == tool.name
    if expected_name is not None:
        assert tool.name == expected_name
    assert isinstance(tool.inputSchema, dict)
    assert tool.inputSchema.get("type") == "object"
    assert "properties" in tool.inputSchema
    properties = tool.inputSchema["properties"]
    assert isinstance(properties, dict)
    assert all(isinstance(k, str) and k and " " not in k for k in properties)
    assert all(isinstance(v, dict) for v in properties.values())
    required = tool.inputSchema.get("required", [])
    assert isinstance(required, list)
    assert all(k in properties for k in required)
    assert isinstance(tool.description, str)
    assert tool.description.strip() == tool.description
    assert len(tool.description) > 0
