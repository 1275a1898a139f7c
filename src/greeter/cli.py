#!/usr/bin/env python3
"""
vimgreet Greeter CLI

Command-line entry point for the greetd login screen.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from common.exceptions import VimgreetError
from common.logging_config import resolve_level, setup_logging
from common.resources import cleanup_all, install_signal_handlers, register_cleanup
from system.power import PowerControl
from system.session import discover_sessions
from system.user import discover_users

from .controller import LoginController
from .ipc import GreetdClient

logger = logging.getLogger(__name__)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Flags shared by the greeter and the onboarding wizard."""
    parser.add_argument("--dryrun", action="store_true",
                        help="Demo mode: no greetd socket, no system changes")
    parser.add_argument("--log-file", type=Path, default=None,
                        help="Write logs to this file (logging is off otherwise)")
    parser.add_argument("--log-level", default="INFO",
                        help="Log level for --log-file (default: INFO)")
    parser.add_argument("--json-logs", action="store_true",
                        help="Write log records as JSON lines")


def configure_logging(args) -> None:
    setup_logging(
        log_file=args.log_file,
        level=resolve_level(args.log_level),
        json_logs=args.json_logs,
    )


def run_greeter(dryrun: bool) -> bool:
    """
    Show the login screen until a session starts or the user quits.

    Returns:
        True if a session was started

    Raises:
        VimgreetError: greetd could not be reached
    """
    from .tui import GreeterApp

    sessions = discover_sessions()
    users = discover_users()
    logger.info(f"Greeter starting with {len(sessions)} sessions, {len(users)} users")

    client = GreetdClient.connect(demo=dryrun)
    register_cleanup(client.close, "greetd socket")

    controller = LoginController(sessions=sessions, users=users, demo=dryrun)
    register_cleanup(controller.wipe, "login buffers")

    if users:
        controller.username.set(users[0].username)

    GreeterApp(controller, client, PowerControl(demo=dryrun)).run()
    return controller.exit_success


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="vimgreet - vim-style greeter for greetd",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vimgreet-greeter                         # Run under greetd
  vimgreet-greeter --dryrun                # Try it out (password: demo)
  vimgreet-greeter --log-file /tmp/g.log   # Log to a file
        """,
    )
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args)
    install_signal_handlers()

    try:
        run_greeter(args.dryrun)
    except VimgreetError as e:
        logger.error(f"Greeter failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        cleanup_all()

    return 0


if __name__ == "__main__":
    sys.exit(main())
