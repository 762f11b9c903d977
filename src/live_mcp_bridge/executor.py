"""Failure classification and tool-result responders for the stdio bridge.

A failed forward is converted once into one of three failure variants, and
each variant maps to exactly one ``CallToolResult`` shape:

- ``ProtocolFailure``: a coded MCP error reflected back by the backend; the
  message is surfaced to the calling agent unchanged.
- ``ConfigFailure``: the configured backend address is not a usable URL.
- ``ConnectivityFailure``: anything else (refused, timed out, not running).
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys

from dataclasses import dataclass
from typing import Any, Union
from urllib.parse import urlsplit, urlunsplit

import httpx

from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult, TextContent

from live_mcp_bridge.config.config_manager import DEFAULT_SERVER_ORIGIN, ENV_SERVER_ORIGIN

logger = logging.getLogger(__name__)

SETUP_DOCS_URL = "https://producer-pal.org/installation"
MIN_LIVE_VERSION = "12.2"

_CODE_PREFIX = re.compile(r"^(?:MCP error\s+-?\d+:\s*)+", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_MAX_URL_LENGTH = 200


# ---------------------------------------------------------------------------
# Failure variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProtocolFailure:
    code: int
    message: str


@dataclass(frozen=True)
class ConfigFailure:
    detail: str


@dataclass(frozen=True)
class ConnectivityFailure:
    cause: BaseException


BridgeFailure = Union[ProtocolFailure, ConfigFailure, ConnectivityFailure]


def _error_code(exc: BaseException) -> int | None:
    if isinstance(exc, McpError):
        return exc.error.code
    code = getattr(exc, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return None


def _iter_causes(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def strip_error_code_prefix(message: str) -> str:
    """Remove ``MCP error -32602:`` style prefixes added by SDK error wrapping."""
    return _CODE_PREFIX.sub("", message.strip()) or message.strip()


def classify_failure(exc: BaseException) -> BridgeFailure:
    """Map a caught exception onto a failure variant (first match wins)."""
    code = _error_code(exc)
    if code is not None:
        message = exc.error.message if isinstance(exc, McpError) else str(exc)
        return ProtocolFailure(code=code, message=strip_error_code_prefix(message))

    for link in _iter_causes(exc):
        if isinstance(link, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
            return ConfigFailure(detail=str(link))

    return ConnectivityFailure(cause=exc)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def sanitize_url(url: str) -> str:
    """Make a user-supplied URL safe to echo back: no credentials, no control chars."""
    cleaned = _CONTROL_CHARS.sub("?", url.strip())
    try:
        parts = urlsplit(cleaned)
        if parts.username is not None or parts.password is not None:
            host = parts.hostname or ""
            if parts.port is not None:
                host = f"{host}:{parts.port}"
            cleaned = urlunsplit(parts._replace(netloc=host))
    except ValueError:
        pass
    if len(cleaned) > _MAX_URL_LENGTH:
        cleaned = cleaned[: _MAX_URL_LENGTH - 3] + "..."
    return cleaned


def get_setup_message() -> str:
    """Return the standard setup hint shown with connection problems."""
    return (
        f"Ableton Live {MIN_LIVE_VERSION} or newer must be running with the bridge "
        "device loaded in the current Live Set.\n\n"
        f"Setup instructions: {SETUP_DOCS_URL}"
    )


def get_connectivity_message() -> str:
    return (
        "Cannot connect to Ableton Live. It may not be running, or the bridge device "
        "is not loaded in the Live Set.\n\n"
        f"{get_setup_message()}"
    )


def get_misconfiguration_message(configured_url: str) -> str:
    return (
        f"The MCP bridge is misconfigured: '{sanitize_url(configured_url)}' is not a valid "
        f"server address.\n\nCheck the {ENV_SERVER_ORIGIN} setting in your MCP client "
        f"configuration (for example {DEFAULT_SERVER_ORIGIN}), or remove it to use the default.\n\n"
        f"Setup instructions: {SETUP_DOCS_URL}"
    )


def create_error_result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=True)


def failure_response(failure: BridgeFailure, configured_url: str) -> CallToolResult:
    """Build the tool result for a classified failure. Always ``isError=True``."""
    if isinstance(failure, ProtocolFailure):
        return create_error_result(failure.message)
    if isinstance(failure, ConfigFailure):
        logger.error("Invalid backend URL %r: %s", sanitize_url(configured_url), failure.detail)
        return create_error_result(get_misconfiguration_message(configured_url))
    logger.debug("Backend unreachable: %s: %s", type(failure.cause).__name__, failure.cause)
    return create_error_result(get_connectivity_message())


# ---------------------------------------------------------------------------
# Process-level helpers
# ---------------------------------------------------------------------------


def run_async(coro: Any) -> Any:
    """Run an async coroutine."""
    return asyncio.run(coro)


def handle_command_error(error: BaseException) -> None:
    """Report a fatal bridge error on stderr (stdout belongs to the protocol)."""
    logger.debug("Fatal bridge error", exc_info=error)
    sys.stderr.write(f"Error: the MCP bridge stopped: {type(error).__name__}: {error}\n\n{get_setup_message()}\n")
