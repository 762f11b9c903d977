"""Live MCP bridge tests

These tests exercise the bridge without a running Ableton Live backend:
outbound clients are replaced by fakes (tests/helpers.py) or by an
in-process httpx transport.

Test Structure:
- test_registry.py - Tool definitions and the offline fallback catalog
- test_executor.py - Failure classification and error results
- test_http_client.py - Streamable-HTTP client (JSON and SSE replies, sessions)
- test_backend_connection.py - Lazy connect, reconnect, client generations and cleanup
- test_stdio_bridge.py - tools/list and tools/call forwarding
- test_config.py - Environment configuration and logging setup
- test_cli.py - Command line entry point
- test_cli_process.py - Signal shutdown of a real bridge process (integration)

Usage:
    pytest tests/ -v
    pytest tests/test_stdio_bridge.py -v
    pytest tests/ -k "fallback" -v
"""
