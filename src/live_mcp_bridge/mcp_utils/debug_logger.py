"""Logging setup and verbose-only debug helpers for the bridge.

stdout carries the MCP JSON-RPC stream, so log output only ever goes to stderr
and, when enabled, to an append-only file in the platform's log directory.
"""

from __future__ import annotations

import logging
import os
import sys

from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from live_mcp_bridge.config import BridgeConfig

logger = logging.getLogger(__name__)

ROOT_LOGGER_NAME = "live_mcp_bridge"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE_NAME = "bridge.log"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3


def default_log_path(platform: str | None = None, environ: dict[str, str] | None = None) -> Path:
    """Return the OS-specific log file location."""
    platform = platform or sys.platform
    env = os.environ if environ is None else environ
    home = Path(env.get("HOME") or Path.home())

    if platform == "darwin":
        return home / "Library" / "Logs" / "LiveMcpBridge" / LOG_FILE_NAME
    if platform.startswith("win"):
        base = env.get("LOCALAPPDATA") or str(home / "AppData" / "Local")
        return Path(base) / "LiveMcpBridge" / "Logs" / LOG_FILE_NAME
    state_home = env.get("XDG_STATE_HOME") or str(home / ".local" / "state")
    return Path(state_home) / "live-mcp-bridge" / LOG_FILE_NAME


def configure_logging(config: BridgeConfig, log_path: Path | None = None) -> logging.Logger:
    """Install stderr (and optional file) handlers on the package logger.

    Args:
        config: Resolved bridge configuration
        log_path: Override for the log file location

    Returns:
        The configured package logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    level = logging.DEBUG if config.verbose_logging else logging.INFO
    root.setLevel(level)
    root.propagate = False
    DebugLogger.set_debug_enabled(config.verbose_logging)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.DEBUG if config.verbose_logging else logging.WARNING)
    stderr_handler.setFormatter(formatter)
    root.addHandler(stderr_handler)

    if config.file_logging_enabled:
        path = log_path or default_log_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except OSError as e:
            sys.stderr.write(f"Warning: file logging disabled, cannot open {path}: {e}\n")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            root.info("Logging to %s", path)

    return root


class DebugLogger:
    """Debug helpers that only emit when verbose logging is on."""

    _debug_enabled: bool = False

    @staticmethod
    def set_debug_enabled(enabled: bool) -> None:
        DebugLogger._debug_enabled = enabled

    @staticmethod
    def is_debug_enabled() -> bool:
        return DebugLogger._debug_enabled

    @staticmethod
    def debug_connection(source: Any, message: str) -> None:
        """Log a connection-lifecycle message.

        Args:
            source: The object reporting the event
            message: The message to log
        """
        if DebugLogger._debug_enabled:
            logger.debug("[CONNECTION] %s: %s", type(source).__name__, message)

    @staticmethod
    def debug_tool_execution(source: Any, tool_name: str, status: str, details: str | None = None) -> None:
        """Log a forwarded tool call.

        Args:
            source: The object reporting the event
            tool_name: Name of the forwarded tool
            status: START, SUCCESS, ERROR, ...
            details: Additional details (optional)
        """
        if DebugLogger._debug_enabled:
            message = f"[TOOL] {tool_name} - {status}"
            if details:
                message += f": {details}"
            logger.debug(message)
