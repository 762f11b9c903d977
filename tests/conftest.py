"""Pytest configuration and fixtures for the Live MCP bridge tests."""

from __future__ import annotations

import logging

import pytest

from live_mcp_bridge.config import BridgeConfig
from live_mcp_bridge.config.config_manager import (
    ENV_CONNECT_TIMEOUT,
    ENV_ENABLE_LOGGING,
    ENV_REQUEST_TIMEOUT,
    ENV_SERVER_ORIGIN,
    ENV_SMALL_MODEL_MODE,
    ENV_TEST_MODE,
    ENV_VERBOSE_LOGGING,
)
from live_mcp_bridge.mcp_utils.debug_logger import ROOT_LOGGER_NAME, DebugLogger


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's environment out of the tests; never write log files."""
    for key in (
        ENV_SERVER_ORIGIN,
        ENV_SMALL_MODEL_MODE,
        ENV_ENABLE_LOGGING,
        ENV_VERBOSE_LOGGING,
        ENV_CONNECT_TIMEOUT,
        ENV_REQUEST_TIMEOUT,
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv(ENV_TEST_MODE, "true")
    yield


@pytest.fixture
def restore_package_logger():
    """Undo handler changes made by configure_logging()."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    saved_handlers = list(root.handlers)
    saved_level = root.level
    saved_propagate = root.propagate
    yield root
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)
    root.propagate = saved_propagate
    DebugLogger.set_debug_enabled(False)


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(server_origin="http://localhost:3350", test_mode=True)
