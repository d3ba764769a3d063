"""
ROLLOFF Application Entry Point

Command line entry point for the roll-off roof driver. Handles arguments,
configuration loading, signal handling and runs the driver host.

Usage:
    rolloff                             # Run the driver with default config
    rolloff --config /path/to/config.yaml
    rolloff --simulator --log-level DEBUG
    rolloff --dry-run                   # Validate config and show the pin table
    rolloff --command open              # Run one command and wait for the roof

Entry Points:
    - CLI: `rolloff` command (via pyproject.toml)
    - Direct: `python -m rolloff.main`
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import TYPE_CHECKING

from rolloff import __version__
from rolloff.config import RolloffConfig, load_config
from rolloff.exceptions import ConfigurationError, RolloffError
from rolloff.logging_config import get_logger, setup_logging

from services.enclosure.driver_api import CommandKind
from services.enclosure.driver_host import RoofDriverHost

if TYPE_CHECKING:
    from types import FrameType

__all__ = ["main", "async_main", "create_parser", "COMMANDS"]

logger = get_logger(__name__)

# CLI command name -> (driver command, arguments)
COMMANDS: dict[str, tuple[CommandKind, dict]] = {
    "open": (CommandKind.OPEN, {}),
    "close": (CommandKind.CLOSE, {}),
    "park": (CommandKind.PARK, {}),
    "unpark": (CommandKind.UNPARK, {}),
    "abort": (CommandKind.ABORT, {}),
    "lock-on": (CommandKind.LOCK, {"on": True}),
    "lock-off": (CommandKind.LOCK, {"on": False}),
    "aux-on": (CommandKind.AUX, {"on": True}),
    "aux-off": (CommandKind.AUX, {"on": False}),
}


# =============================================================================
# Argument Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="rolloff",
        description="ROLLOFF roll-off roof driver for Raspberry Pi GPIO",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Configuration
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file (default: auto-discover)",
    )

    # Logging
    parser.add_argument(
        "-l",
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (overrides config file)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        metavar="PATH",
        help="Path to log file (default: stdout only)",
    )

    # Operation modes
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration, print the pin table and exit",
    )
    parser.add_argument(
        "--simulator",
        action="store_true",
        help="Use the simulated roof instead of the GPIO header",
    )
    parser.add_argument(
        "--command",
        choices=[*COMMANDS, "status"],
        help="Run a single roof command, wait for the roof to settle and exit",
    )

    return parser


# =============================================================================
# Signal Handlers
# =============================================================================


class GracefulShutdown:
    """Manages graceful shutdown on signals.

    Handles SIGINT (Ctrl+C) and SIGTERM so the tick loop stops and the GPIO
    session is closed before exit. A roof in motion is left to the external
    controller, which stops at the limit by itself.
    """

    def __init__(self) -> None:
        self._shutdown_requested = False
        self._shutdown_event: asyncio.Event | None = None
        self._original_handlers: dict[int, signal.Handlers] = {}

    @property
    def shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def install_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        self._original_handlers[signal.SIGINT] = signal.signal(
            signal.SIGINT, self._handle_signal
        )
        self._original_handlers[signal.SIGTERM] = signal.signal(
            signal.SIGTERM, self._handle_signal
        )
        logger.debug("Signal handlers installed for graceful shutdown")

    def restore_handlers(self) -> None:
        """Restore original signal handlers."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()
        logger.debug("Original signal handlers restored")

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        signal_name = signal.Signals(signum).name
        if self._shutdown_requested:
            logger.warning(f"Received {signal_name} again - forcing immediate exit")
            sys.exit(1)

        logger.info(f"Received {signal_name} - initiating graceful shutdown...")
        self._shutdown_requested = True

        if self._shutdown_event is not None:
            self._shutdown_event.set()

    def get_shutdown_event(self) -> asyncio.Event:
        """Get or create async shutdown event.

        Returns:
            Event that is set when shutdown is requested
        """
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
        return self._shutdown_event


_shutdown_handler = GracefulShutdown()


def get_shutdown_handler() -> GracefulShutdown:
    """Get the global shutdown handler instance."""
    return _shutdown_handler


# =============================================================================
# Output
# =============================================================================


def print_banner(config: RolloffConfig) -> None:
    """Print startup banner with configuration summary."""
    gpio = config.gpio
    where = f"{gpio.host or 'localhost'}:{gpio.port}" if gpio.backend == "pigpio" else "local"
    print(f"ROLLOFF v{__version__}")
    print(f"  Backend: {gpio.backend} ({where})")
    print(f"  Motion timeout: {config.motion.timeout_sec}s")
    print(f"  Mount lock policy: {'on' if config.motion.mount_lock_policy else 'off'}")


def print_status(host: RoofDriverHost) -> None:
    print(json.dumps(host.status.to_dict(), indent=2))


# =============================================================================
# Main Entry Points
# =============================================================================


async def run_command(host: RoofDriverHost, name: str, settle_timeout: float) -> int:
    """Run one CLI command against a started host.

    Returns:
        Exit code (0 for success)
    """
    if name == "status":
        host.controller.on_tick()
        print_status(host)
        return 0

    kind, args = COMMANDS[name]
    result = host.command(kind, **args)
    print(result.message)
    if not result.ok:
        return 1

    if not await host.wait_until_settled(timeout=settle_timeout):
        logger.warning("Roof did not settle before the wait expired")
    print_status(host)
    return 0 if host.controller.timed_out is None else 1


async def async_main(args: argparse.Namespace, config: RolloffConfig) -> int:
    """Async main function running the driver host.

    Args:
        args: Parsed command-line arguments
        config: Validated configuration

    Returns:
        Exit code (0 for success)
    """
    shutdown = get_shutdown_handler()
    shutdown_event = shutdown.get_shutdown_event()

    host = RoofDriverHost(config, config_path=args.config)
    if not await host.start():
        logger.error("Failed to start the roof driver")
        return 1

    try:
        if args.command:
            settle_timeout = config.motion.timeout_sec + 5.0
            return await run_command(host, args.command, settle_timeout)

        logger.info("Roof driver running. Press Ctrl+C to stop.")
        await shutdown_event.wait()
        logger.info("Shutdown signal received, stopping driver...")
        return 0

    except RolloffError as e:
        logger.error(f"Roof driver error: {e}")
        return 1
    finally:
        await host.stop()


def dry_run(config: RolloffConfig) -> int:
    """Validate the pin configuration and print the pin table."""
    host = RoofDriverHost(config)
    engine = host.controller.engine
    for line in engine.summary():
        print(f"  {line}")
    problems = engine.pin_map.problems()
    for problem in problems:
        print(f"  ! {problem}")
    if problems:
        print("\nConfiguration has problems, roof operations will fail")
        return 1
    print("\nConfiguration is valid")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the ROLLOFF application.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Basic setup before config is loaded
    setup_logging(log_level=args.log_level or "INFO", log_file=args.log_file)

    logger.info(f"ROLLOFF v{__version__} starting...")

    try:
        logger.debug(f"Loading configuration from: {args.config or 'auto-discover'}")
        config = load_config(args.config)
        logger.info("Configuration loaded successfully")
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(
        log_level=args.log_level or config.logging.level,
        log_file=args.log_file or config.logging.file,
        json_format=config.logging.json_format,
        enable_color=config.logging.color,
    )

    if args.simulator:
        config.gpio.backend = "simulator"
        logger.info("Simulator mode enabled")

    print_banner(config)

    if args.dry_run:
        logger.info("Dry run mode - validating configuration")
        try:
            return dry_run(config)
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return 1

    shutdown = get_shutdown_handler()
    shutdown.install_handlers()

    try:
        return asyncio.run(async_main(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except RolloffError as e:
        logger.error(f"ROLLOFF error: {e}")
        return 1
    finally:
        shutdown.restore_handlers()
        logger.info("ROLLOFF shutdown complete")


if __name__ == "__main__":
    sys.exit(main())
