"""Configuration for the Live MCP stdio bridge.

Settings come from environment variables (the MCP host passes them when it
spawns the bridge) and may be overridden by command-line flags.
"""

from __future__ import annotations

import logging
import os

from collections.abc import Mapping

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ENV_SERVER_ORIGIN = "MCP_SERVER_ORIGIN"
ENV_SMALL_MODEL_MODE = "SMALL_MODEL_MODE"
ENV_ENABLE_LOGGING = "ENABLE_LOGGING"
ENV_VERBOSE_LOGGING = "VERBOSE_LOGGING"
ENV_TEST_MODE = "LIVE_MCP_BRIDGE_TEST_MODE"
ENV_CONNECT_TIMEOUT = "MCP_CONNECT_TIMEOUT"
ENV_REQUEST_TIMEOUT = "MCP_REQUEST_TIMEOUT"

DEFAULT_SERVER_ORIGIN = "http://localhost:3350"
MCP_ENDPOINT_PATH = "/mcp"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_REQUEST_TIMEOUT = 120.0


def _is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_timeout(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s value %r, using %s", key, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive, using %s", key, default)
        return default
    return value


class BridgeConfig(BaseModel):
    """Resolved bridge settings."""

    server_origin: str = DEFAULT_SERVER_ORIGIN
    small_model_mode: bool = False
    enable_logging: bool = False
    verbose_logging: bool = False
    test_mode: bool = False
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeConfig:
        """Build a configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (for tests)
        """
        env = os.environ if environ is None else environ

        origin = env.get(ENV_SERVER_ORIGIN)
        if origin is None or not origin.strip():
            origin = DEFAULT_SERVER_ORIGIN

        return cls(
            server_origin=origin,
            # Only the literal "true" switches small-model mode on.
            small_model_mode=env.get(ENV_SMALL_MODEL_MODE, "").strip().lower() == "true",
            enable_logging=_is_truthy(env.get(ENV_ENABLE_LOGGING)),
            verbose_logging=_is_truthy(env.get(ENV_VERBOSE_LOGGING)),
            test_mode=_is_truthy(env.get(ENV_TEST_MODE)),
            connect_timeout=_parse_timeout(env, ENV_CONNECT_TIMEOUT, DEFAULT_CONNECT_TIMEOUT),
            request_timeout=_parse_timeout(env, ENV_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT),
        )

    @property
    def backend_url(self) -> str:
        """MCP endpoint of the backend. Not validated here; a bad origin surfaces on connect."""
        return f"{self.server_origin.strip().rstrip('/')}{MCP_ENDPOINT_PATH}"

    @property
    def file_logging_enabled(self) -> bool:
        return self.enable_logging and not self.test_mode
