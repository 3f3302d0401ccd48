#!/usr/bin/env python3
"""
Chat Relay server entry point

Usage:
    python -m chat_relay [--host HOST] [--port PORT]

Every option falls back to its CHAT_RELAY_* environment variable.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from rich.console import Console

from .exceptions import ChatRelayError
from .hub import run_server
from .monitor import MetricsCollector
from .utils import FRAMING_MODES, RelayConfig, configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-relay", description="Line-delimited TCP chat relay"
    )
    parser.add_argument("--host", type=str, help="Host to bind to")
    parser.add_argument("--port", type=int, help="TCP port to listen on")
    parser.add_argument(
        "--capacity", dest="hub_capacity", type=int, help="Broadcast backlog size"
    )
    parser.add_argument(
        "--read-timeout", type=float, help="Idle-read timeout per connection (seconds)"
    )
    parser.add_argument(
        "--framing", choices=FRAMING_MODES, help="Split input on lines or per read"
    )
    parser.add_argument("--log-level", type=str, help="Log level (debug, info, ...)")
    parser.add_argument("--log-file", type=str, help="Also log to this file")
    parser.add_argument(
        "--no-rich",
        dest="enable_rich_logging",
        action="store_false",
        default=None,
        help="Plain console logging",
    )
    parser.add_argument(
        "--metrics",
        dest="metrics_enabled",
        action="store_true",
        default=None,
        help="Print a metrics summary on shutdown",
    )
    return parser


def load_config(argv: Optional[List[str]] = None) -> RelayConfig:
    """Environment configuration overridden by command line options"""
    args = build_parser().parse_args(argv)
    config = RelayConfig.from_env()
    config.update(**{key: value for key, value in vars(args).items() if value is not None})
    return config.validate()


async def serve(config: RelayConfig) -> Optional[MetricsCollector]:
    metrics = MetricsCollector() if config.metrics_enabled else None
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt ends asyncio.run() instead
            pass

    await run_server(config, emit=metrics, stop_event=stop_event)
    return metrics


def main(argv: Optional[List[str]] = None) -> int:
    config = load_config(argv)
    logger = configure_logging(
        level=config.log_level,
        log_file=config.log_file,
        enable_rich=config.enable_rich_logging,
    )
    logger.info(f"Starting chat server on {config.address}")

    try:
        metrics = asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Server shutting down...")
        return 0
    except ChatRelayError as e:
        logger.error(f"Server failed: {e}")
        return 1

    if metrics is not None:
        Console().print(metrics.render_summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
