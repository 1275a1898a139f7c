"""
System command execution for the onboarding wizard.

Every function here touches the live system through subprocess. Dry-run
mode never reaches this module; see service.DryrunService.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from common.exceptions import CommandFailedError, UserCreationError
from utils.atomic_write import atomic_write_text

logger = logging.getLogger(__name__)

GREETD_CONFIG_PATH = Path("/etc/greetd/config.toml")

QUERY_TIMEOUT = 30
SETTER_TIMEOUT = 60
PACKAGE_TIMEOUT = 3600

# Prompt and error lines sudo writes to stderr
_SUDO_NOISE = re.compile(r"\[sudo\]|password", re.IGNORECASE)

_TABLE_HEADER = re.compile(r"^\s*\[\[?\s*([^\]]+?)\s*\]\]?\s*(#.*)?$")


def _run(
    argv: Sequence[str],
    timeout: int,
    input: Optional[str] = None,
) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            list(argv),
            capture_output=True,
            text=True,
            input=input,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandFailedError(f"{argv[0]} timed out after {timeout}s", argv[0]) from e
    except OSError as e:
        raise CommandFailedError(f"Failed to run {argv[0]}: {e}", argv[0]) from e


def _list_output(argv: List[str], fallback: str) -> List[str]:
    try:
        result = _run(argv, QUERY_TIMEOUT)
    except CommandFailedError as e:
        logger.warning(f"{' '.join(argv)} unavailable: {e.message}")
        return [fallback]

    items = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    if result.returncode != 0 or not items:
        logger.warning(f"{' '.join(argv)} returned nothing, using {fallback}")
        return [fallback]
    return items


def filter_sudo_noise(text: str) -> str:
    """Drop sudo prompt lines from captured stderr."""
    return "\n".join(
        line for line in text.splitlines() if not _SUDO_NOISE.search(line)
    ).strip()


def check_network() -> bool:
    """Return True if 1.1.1.1 answers one ping within two seconds."""
    try:
        result = _run(["ping", "-c", "1", "-W", "2", "1.1.1.1"], QUERY_TIMEOUT)
    except CommandFailedError:
        return False
    return result.returncode == 0


def list_locales() -> List[str]:
    return _list_output(["localectl", "list-locales"], "en_US.UTF-8")


def list_keymaps() -> List[str]:
    return _list_output(["localectl", "list-keymaps"], "us")


def list_timezones() -> List[str]:
    return _list_output(["timedatectl", "list-timezones"], "UTC")


def _setter(argv: List[str]) -> None:
    logger.info(f"Running {' '.join(argv)}")
    result = _run(argv, SETTER_TIMEOUT)
    if result.returncode != 0:
        detail = result.stderr.strip()
        message = f"{argv[0]} {argv[1]} failed with code {result.returncode}"
        if detail:
            message += f": {detail}"
        raise CommandFailedError(message, " ".join(argv))


def set_locale(locale: str) -> None:
    _setter(["localectl", "set-locale", f"LANG={locale}"])


def set_keymap(keymap: str) -> None:
    _setter(["localectl", "set-keymap", keymap])


def set_timezone(timezone: str) -> None:
    _setter(["timedatectl", "set-timezone", timezone])


def useradd_argv(username: str, shell: str, groups: Sequence[str]) -> List[str]:
    argv = ["useradd", "-m", "-s", shell]
    if groups:
        argv += ["-G", ",".join(groups)]
    argv.append(username)
    return argv


def create_user(username: str, password: str, shell: str, groups: Sequence[str]) -> None:
    """
    Create an account and set its password.

    The password is written to chpasswd's stdin, never to argv.

    Raises:
        UserCreationError: useradd or chpasswd failed
    """
    logger.info(f"Creating user {username}")
    try:
        result = _run(useradd_argv(username, shell, groups), SETTER_TIMEOUT)
    except CommandFailedError as e:
        raise UserCreationError(e.message, cause=e)
    if result.returncode != 0:
        raise UserCreationError(
            f"useradd failed with code {result.returncode}: {result.stderr.strip()}"
        )

    try:
        result = _run(["chpasswd"], SETTER_TIMEOUT, input=f"{username}:{password}\n")
    except CommandFailedError as e:
        raise UserCreationError(e.message, cause=e)
    if result.returncode != 0:
        raise UserCreationError(
            f"chpasswd failed with code {result.returncode}: {result.stderr.strip()}"
        )


def _command_output(result: subprocess.CompletedProcess, sudo: bool) -> str:
    stderr = filter_sudo_noise(result.stderr) if sudo else result.stderr.strip()
    if result.returncode != 0:
        detail = stderr or result.stdout.strip() or f"exit code {result.returncode}"
        raise CommandFailedError(f"Command failed: {detail}")
    return result.stdout.strip()


def run_command_as_user(username: str, command: Sequence[str]) -> str:
    """
    Run argv as a user through a login shell.

    Returns:
        Captured stdout

    Raises:
        CommandFailedError: Empty command or non-zero exit
    """
    if not command:
        raise CommandFailedError("Empty command")
    script = shlex.join(command)
    logger.info(f"Running as {username}: {script}")
    result = _run(["su", "-l", username, "-c", script], PACKAGE_TIMEOUT)
    return _command_output(result, sudo=False)


def run_command_as_user_with_sudo(username: str, command: Sequence[str], password: str) -> str:
    """
    Run argv under sudo as a user.

    sudo reads the password from stdin (-S) with an empty prompt, so the
    password never appears in argv or in captured output.
    """
    if not command:
        raise CommandFailedError("Empty command")
    script = f"sudo -S -p '' {shlex.join(command)}"
    logger.info(f"Running as {username} with sudo: {shlex.join(command)}")
    result = _run(["su", "-l", username, "-c", script], PACKAGE_TIMEOUT, input=f"{password}\n")
    return _command_output(result, sudo=True)


def strip_initial_session(text: str) -> str:
    """Remove the [initial_session] table from a greetd config."""
    kept = []
    skipping = False
    for line in text.splitlines(keepends=True):
        header = _TABLE_HEADER.match(line)
        if header:
            skipping = header.group(1) == "initial_session"
        if not skipping:
            kept.append(line)
    return "".join(kept)


def remove_initial_session(path: Path = GREETD_CONFIG_PATH) -> bool:
    """
    Drop greetd's auto-login table so the next boot shows the greeter.

    Returns:
        True if the file was changed
    """
    try:
        text = path.read_text()
    except FileNotFoundError:
        logger.info(f"{path} does not exist, nothing to remove")
        return False
    except OSError as e:
        raise CommandFailedError(f"Cannot read {path}: {e}") from e

    stripped = strip_initial_session(text)
    if stripped == text:
        return False

    try:
        atomic_write_text(path, stripped)
    except OSError as e:
        raise CommandFailedError(f"Cannot write {path}: {e}") from e
    logger.info(f"Removed initial_session from {path}")
    return True
