#!/usr/bin/env python3
"""
vimgreet Onboarding CLI

Command-line entry point for the first-boot setup wizard.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from common.exceptions import VimgreetError
from common.resources import cleanup_all, install_signal_handlers, register_cleanup
from greeter.cli import add_common_arguments, configure_logging, run_greeter
from system.power import PowerControl

from .config import DEFAULT_CONFIG_PATH, load_config
from .service import create_service
from .wizard import OnboardWizard

logger = logging.getLogger(__name__)


def run_wizard(config_path: Optional[Path], dryrun: bool) -> bool:
    """
    Run the wizard to completion.

    Returns:
        True if the caller should continue into the login screen

    Raises:
        ConfigLoadError: The configuration file is malformed
    """
    from .tui import OnboardApp

    config = load_config(config_path)
    if dryrun:
        config.general.dryrun = True
    dryrun = config.general.dryrun

    wizard = OnboardWizard(config, create_service(dryrun))
    register_cleanup(wizard.wipe, "wizard passwords")

    result = OnboardApp(wizard, PowerControl(demo=dryrun)).run()
    return bool(result)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="vimgreet - first-boot setup wizard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  vimgreet-onboard                          # Use {DEFAULT_CONFIG_PATH}
  vimgreet-onboard --config ./onboard.toml  # Use another config
  vimgreet-onboard --dryrun                 # Walk through without changes
        """,
    )
    parser.add_argument("--config", type=Path, default=None,
                        help=f"Configuration file (default: {DEFAULT_CONFIG_PATH})")
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args)
    install_signal_handlers()

    try:
        if run_wizard(args.config, args.dryrun):
            logger.info("Dry run finished, continuing to the login screen")
            run_greeter(True)
    except VimgreetError as e:
        logger.error(f"Onboarding failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        cleanup_all()

    return 0


if __name__ == "__main__":
    sys.exit(main())
