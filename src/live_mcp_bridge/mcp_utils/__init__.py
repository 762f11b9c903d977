"""Shared utilities for the Live MCP bridge."""

from .debug_logger import DebugLogger, configure_logging, default_log_path

__all__ = [
    "DebugLogger",
    "configure_logging",
    "default_log_path",
]
