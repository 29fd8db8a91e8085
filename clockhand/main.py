"""Main entry point for clockhand.

This module handles the command-line interface (CLI), configuration loading,
logging setup, and the lifetime of the watch loop.

Commands:
    - ``watch PATH... [--interval SECONDS]``: watch project roots and notify.
    - ``report``: print time entries since the start of last week.
    - ``test-notification``: show a test desktop notification.

Exit Status:
    - ``0``: normal completion, including shutdown via SIGINT/SIGTERM.
    - ``1``: configuration errors, Harvest errors in ``report``, a failed test
      notification, or a lost file system watch.
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from types import FrameType
from typing import List, Optional

from clockhand import __version__
from clockhand.config import Config, load_config
from clockhand.context import AppContext
from clockhand.errors import (
    ConfigMalformed,
    ConfigNotFound,
    NotificationDeliveryFailed,
    RemoteQueryFailed,
    WatchSubscriptionLost,
)
from clockhand.notifier import DesktopNotifier, send_test_notification
from clockhand.projects import ProjectRegistry
from clockhand.report import print_report
from clockhand.watcher import ChangeDebouncer, WatchLoop

# Logging configuration constants
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def setup_logging(log_level: str, log_file: Optional[str]) -> None:
    """Configure the logging system.

    Sets up console logging (stdout) and optional file logging with rotation
    (10MB, 5 backups).

    Args:
        log_level (str): The logging level (e.g., "DEBUG", "INFO").
        log_file (Optional[str]): Optional path to a log file.

    Raises:
        ValueError: If the provided log_level is not a valid logging level.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    handlers: List[logging.Handler] = []
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
            file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as e:
            # Logging isn't set up yet
            sys.stderr.write(f"Warning: Failed to setup log file '{log_file}': {e}\n")

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clockhand",
        description="Remind you to run a Harvest timer for the project you're editing.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging (overrides --log-level)."
    )
    parser.add_argument("--log-file", type=str, default=None, help="Path to the log file.")
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO",
    )

    subparsers = parser.add_subparsers(dest="command")

    watch = subparsers.add_parser("watch", help="Watch projects and notify about timers.")
    watch.add_argument(
        "project_config_paths",
        nargs="+",
        metavar="PROJECT_CONFIG",
        help=(
            "Project clockhand.json files to watch, e.g. "
            "project_a/clockhand.json project_b/.config/clockhand.json "
            "or ~/code/*/clockhand.json (shell expansion)."
        ),
    )
    watch.add_argument(
        "-i",
        "--interval",
        type=float,
        default=None,
        help="Minimum seconds between timer checks (default: 60).",
    )

    subparsers.add_parser("report", help="Print timers for the most recent two weeks.")
    subparsers.add_parser("test-notification", help="Show a test desktop notification.")
    return parser


def run_watch(context: AppContext, project_config_paths: List[str]) -> int:
    """Watch the given projects until SIGINT/SIGTERM.

    Raises:
        ConfigNotFound: If a project descriptor is missing.
        ConfigMalformed: If a project descriptor is invalid.
    """
    registry = ProjectRegistry.load(project_config_paths)
    loop = WatchLoop(
        registry,
        context.oracle,
        context.dispatcher,
        ChangeDebouncer(context.config.interval),
    )

    stop_event = threading.Event()

    def signal_handler(sig: int, frame: Optional[FrameType]) -> None:
        sig_name = signal.Signals(sig).name
        logger.info(f"Received signal {sig_name}, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(
        f"Watching {len(registry)} project(s) (interval: {context.config.interval:g}s)"
    )
    try:
        loop.start()
        loop.run(stop_event)
    except WatchSubscriptionLost as e:
        logger.critical(f"Fatal error: {e}")
        return 1
    finally:
        loop.stop()
        logger.info(f"Watch statistics: {loop.get_statistics()}")
    return 0


def run_report(context: AppContext) -> int:
    try:
        print_report(context.client)
    except RemoteQueryFailed as e:
        logger.error(f"Could not build report: {e}")
        return 1
    return 0


def run_test_notification(config: Config) -> int:
    try:
        send_test_notification(DesktopNotifier(), sound=config.sound_name)
    except NotificationDeliveryFailed as e:
        logger.error(f"Test notification failed: {e}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Parse arguments, load configuration and run the selected command.

    Raises:
        SystemExit: With the command's exit status, or a message for
            configuration errors.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Bootstrap logging to capture config loading events
    bootstrap_handler = logging.StreamHandler(sys.stdout)
    bootstrap_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    bootstrap_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=bootstrap_level, handlers=[bootstrap_handler], force=True)

    if args.command is None:
        parser.print_help()
        return

    try:
        config = load_config(vars(args))
        setup_logging(config.log_level, config.log_file)
    except ValueError as e:
        sys.exit(f"Configuration Error: {e}")
    logger.debug(f"Configuration loaded: {config}")

    if args.command == "test-notification":
        sys.exit(run_test_notification(config))

    logger.info(f"Starting clockhand v{__version__} (PID: {os.getpid()})...")
    try:
        context = AppContext.build(config)
    except (ConfigNotFound, ConfigMalformed) as e:
        sys.exit(f"Configuration Error: {e}")

    try:
        if args.command == "report":
            status = run_report(context)
        else:
            status = run_watch(context, args.project_config_paths)
    except (ConfigNotFound, ConfigMalformed) as e:
        sys.exit(f"Configuration Error: {e}")
    finally:
        context.close()
    sys.exit(status)


if __name__ == "__main__":
    main()
