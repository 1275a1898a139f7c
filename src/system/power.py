"""
Reboot and power-off through systemctl.
"""

from __future__ import annotations

import logging
import subprocess

from common.exceptions import PowerError

logger = logging.getLogger(__name__)


class PowerControl:
    """Issues power actions; demo mode only logs them."""

    def __init__(self, demo: bool = False):
        self.demo = demo

    def reboot(self) -> None:
        self._systemctl("reboot", "Reboot")

    def poweroff(self) -> None:
        self._systemctl("poweroff", "Poweroff")

    def _systemctl(self, verb: str, action: str) -> None:
        if self.demo:
            logger.info(f"Demo mode: skipping systemctl {verb}")
            return

        logger.info(f"Running systemctl {verb}")
        try:
            result = subprocess.run(
                ["systemctl", verb],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise PowerError(action, str(e)) from e

        if result.returncode != 0:
            reason = result.stderr.strip() or f"exit code {result.returncode}"
            raise PowerError(action, reason)
