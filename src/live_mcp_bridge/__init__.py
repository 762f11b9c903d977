"""Live MCP bridge - stdio MCP server forwarding to the Ableton Live HTTP backend.

MCP hosts that can only spawn a local subprocess talk to this package over
stdio; every ``tools/list`` and ``tools/call`` request is forwarded to the
long-running Streamable-HTTP MCP server that controls Ableton Live.

Tool definitions: use live_mcp_bridge.registry (TOOL_DEFINITIONS,
build_fallback_catalog).
"""

try:
    from ._version import version as __version__
except ImportError:
    # Not installed (running from a source checkout)
    __version__ = "0.0.0.dev0"

from live_mcp_bridge.bridge import (
    BackendConnection,
    BackendConnectionError,
    BridgeError,
    LiveMcpHttpClient,
    LiveStdioBridge,
)
from live_mcp_bridge.config import BridgeConfig
from live_mcp_bridge.executor import (
    ConfigFailure,
    ConnectivityFailure,
    ProtocolFailure,
    classify_failure,
    failure_response,
)
from live_mcp_bridge.registry import (
    INTERNAL_TOOL_NAME,
    TOOL_DEFINITIONS,
    ToolDefinition,
    build_fallback_catalog,
)

__all__ = [
    "INTERNAL_TOOL_NAME",
    "TOOL_DEFINITIONS",
    "BackendConnection",
    "BackendConnectionError",
    "BridgeConfig",
    "BridgeError",
    "ConfigFailure",
    "ConnectivityFailure",
    "LiveMcpHttpClient",
    "LiveStdioBridge",
    "ProtocolFailure",
    "ToolDefinition",
    "__version__",
    "build_fallback_catalog",
    "classify_failure",
    "failure_response",
]
