"""
mprisqueeze - Entry Point

Run with: python -m mprisqueeze
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from mprisqueeze import __version__
from mprisqueeze.bridge import Bridge
from mprisqueeze.config import BridgeConfig, load_config
from mprisqueeze.errors import MprisqueezeError


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="mprisqueeze",
        description="Run squeezelite and control it over MPRIS through Logitech Media Server",
    )

    parser.add_argument(
        "-n",
        "--name",
        type=str,
        help="Player name, must be unique on the LMS server (default: Squeezelite)",
    )

    parser.add_argument(
        "-H",
        "--host",
        type=str,
        help="LMS host (default: discover on the local network)",
    )

    parser.add_argument(
        "-P",
        "--port",
        type=int,
        help="LMS JSON-RPC port (default: 9000)",
    )

    parser.add_argument(
        "-c",
        "--command",
        type=str,
        help="Player command template, must contain {name} and {server} "
        "(default: 'squeezelite -n {name} -s {server}')",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a TOML config file",
    )

    parser.add_argument(
        "--discovery-timeout",
        type=float,
        help="Seconds to wait for an LMS discovery reply (default: 3)",
    )

    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        help="LMS request timeout in seconds (default: 5)",
    )

    parser.add_argument(
        "--poll-interval",
        type=float,
        help="Seconds between status polls for change signals, 0 disables (default: 0.5)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> BridgeConfig:
    """Load the config file and apply the command line on top of it."""
    config = load_config(args.config).with_overrides(
        name=args.name,
        host=args.host,
        port=args.port,
        command=args.command,
        discovery_timeout=args.discovery_timeout,
        request_timeout=args.timeout,
        poll_interval=args.poll_interval,
    )
    config.validate()
    return config


async def run_bridge(config: BridgeConfig) -> int:
    """Start and run the bridge."""
    bridge = Bridge(config)
    return await bridge.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        config = build_config(args)
        logger.info("Starting mprisqueeze for player %s...", config.name)
        exit_code = asyncio.run(run_bridge(config))
    except MprisqueezeError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("Bridge stopped")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
