#!/usr/bin/env python3
"""Live MCP bridge - main entry point.

Runs an MCP server on stdio and forwards every request to the Live backend's
Streamable-HTTP endpoint.
Usage: claude mcp add live -- live-mcp-bridge [--server-origin URL] [--verbose]

The backend origin defaults to MCP_SERVER_ORIGIN (http://localhost:3350); the
MCP endpoint is <origin>/mcp.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import os
import signal
import sys

from live_mcp_bridge import __version__
from live_mcp_bridge.bridge import LiveStdioBridge
from live_mcp_bridge.config import BridgeConfig
from live_mcp_bridge.executor import handle_command_error, run_async
from live_mcp_bridge.mcp_utils.debug_logger import configure_logging


def _terminate(code: int) -> None:
    """Exit immediately, without joining the stdin reader thread.

    The stdio transport reads stdin in a worker thread that cannot be
    interrupted; a normal interpreter exit would wait for the next line.
    """
    for stream in (sys.stdout, sys.stderr):
        with contextlib.suppress(OSError, ValueError):
            stream.flush()
    os._exit(code)


class LiveBridgeCLI:
    """Main CLI application."""

    def __init__(self, config: BridgeConfig):
        self.config: BridgeConfig = config
        self.bridge: LiveStdioBridge | None = None
        self.shutdown_requested: bool = False
        self._exit_task: asyncio.Task | None = None

    def request_shutdown(self, sig: int) -> None:
        """Close the bridge and exit with code 0. Runs on the event loop."""
        if self.shutdown_requested:
            return
        self.shutdown_requested = True
        sys.stderr.write(f"\nReceived signal {sig}, shutting down gracefully...\n")
        self._exit_task = asyncio.get_running_loop().create_task(self._exit_after_cleanup())

    async def _exit_after_cleanup(self) -> None:
        try:
            await self.cleanup()
        finally:
            sys.stderr.write("Shutdown complete\n")
            _terminate(0)

    def setup_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Shut down on SIGINT/SIGTERM (and SIGHUP where it exists)."""
        signals = [signal.SIGINT, signal.SIGTERM]
        if hasattr(signal, "SIGHUP"):
            signals.append(signal.SIGHUP)

        for sig in signals:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(sig, lambda s, _frame: loop.call_soon_threadsafe(self.request_shutdown, s))

    async def cleanup(self) -> None:
        if self.bridge is not None:
            await self.bridge.shutdown()

    async def run(self) -> None:
        """Serve stdio until EOF. Signals are handled by request_shutdown()."""
        self.setup_signal_handlers(asyncio.get_running_loop())

        self.bridge = LiveStdioBridge(self.config)
        sys.stderr.write(f"Starting stdio bridge to {self.bridge.url}...\n")
        try:
            await self.bridge.run()
        finally:
            await self.cleanup()
        sys.stderr.write("Shutdown complete\n")


def build_config(args: argparse.Namespace) -> BridgeConfig:
    """Environment settings with command-line overrides applied."""
    config = BridgeConfig.from_env()
    updates: dict[str, object] = {}
    if args.server_origin:
        updates["server_origin"] = args.server_origin
    if args.small_model_mode:
        updates["small_model_mode"] = True
    if args.verbose:
        updates["verbose_logging"] = True
    if args.log_file:
        updates["enable_logging"] = True
    return config.model_copy(update=updates)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="live-mcp-bridge",
        description="Stdio MCP bridge to the Ableton Live Streamable-HTTP MCP server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--server-origin",
        type=str,
        default=None,
        metavar="URL",
        help="Backend origin, e.g. http://localhost:3350 (default: MCP_SERVER_ORIGIN)",
    )
    parser.add_argument(
        "--small-model-mode",
        action="store_true",
        default=False,
        help="Advertise the reduced tool set for small models (default: SMALL_MODEL_MODE)",
    )
    parser.add_argument(
        "--log-file",
        action="store_true",
        default=False,
        help="Write an append-only log file in the OS log directory (default: ENABLE_LOGGING)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Enable verbose logging (default: VERBOSE_LOGGING)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the live-mcp-bridge command."""
    args = create_parser().parse_args(argv)
    config = build_config(args)
    configure_logging(config)

    cli = LiveBridgeCLI(config)
    try:
        run_async(cli.run())
    except KeyboardInterrupt:
        sys.stderr.write("\nShutdown complete\n")
        sys.exit(0)
    except Exception as e:
        handle_command_error(e)
        sys.exit(1)


if __name__ == "__main__":
    main()
