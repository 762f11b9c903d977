"""Configuration for the Live MCP stdio bridge."""

from .config_manager import DEFAULT_SERVER_ORIGIN, BridgeConfig

__all__ = [
    "DEFAULT_SERVER_ORIGIN",
    "BridgeConfig",
]
