"""
System service used by the wizard.

LiveService forwards to the executor; DryrunService changes nothing and
answers queries with fixed demo data.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Sequence

from . import executor

logger = logging.getLogger(__name__)

DEMO_LOCALES = [
    "en_US.UTF-8", "en_GB.UTF-8", "de_DE.UTF-8", "fr_FR.UTF-8", "es_ES.UTF-8",
    "it_IT.UTF-8", "pt_BR.UTF-8", "ja_JP.UTF-8", "zh_CN.UTF-8", "ko_KR.UTF-8",
]

DEMO_KEYMAPS = [
    "us", "uk", "de", "fr", "es", "it", "pt", "ru", "jp", "cn", "dvorak", "colemak",
]

DEMO_TIMEZONES = [
    "UTC",
    "America/New_York", "America/Chicago", "America/Denver", "America/Los_Angeles",
    "America/Sao_Paulo",
    "Europe/London", "Europe/Paris", "Europe/Berlin",
    "Asia/Tokyo", "Asia/Shanghai", "Asia/Kolkata",
    "Australia/Sydney",
]


class OpKind(Enum):
    CREATE_USER = auto()
    SET_LOCALE = auto()
    SET_KEYMAP = auto()
    SET_TIMEZONE = auto()
    RUN_COMMAND = auto()
    RUN_COMMAND_SUDO = auto()


@dataclass(frozen=True)
class ServiceOp:
    """A system change, described without secrets."""
    kind: OpKind
    target: str = ""
    args: Sequence[str] = field(default_factory=tuple)


def command_string(op: ServiceOp, shell: str = "/bin/bash", groups: Sequence[str] = ()) -> str:
    """Render an operation as the shell command it corresponds to."""
    if op.kind is OpKind.CREATE_USER:
        return shlex.join(executor.useradd_argv(op.target, shell, groups))
    if op.kind is OpKind.SET_LOCALE:
        return f"localectl set-locale LANG={op.target}"
    if op.kind is OpKind.SET_KEYMAP:
        return f"localectl set-keymap {op.target}"
    if op.kind is OpKind.SET_TIMEZONE:
        return f"timedatectl set-timezone {op.target}"
    if op.kind is OpKind.RUN_COMMAND_SUDO:
        return f"sudo {shlex.join(op.args)}"
    return shlex.join(op.args)


class LiveService:
    """Applies changes to the running system."""

    dryrun = False

    def check_network(self) -> bool:
        return executor.check_network()

    def list_locales(self) -> List[str]:
        return executor.list_locales()

    def list_keymaps(self) -> List[str]:
        return executor.list_keymaps()

    def list_timezones(self) -> List[str]:
        return executor.list_timezones()

    def create_user(self, username: str, password: str, shell: str, groups: Sequence[str]) -> None:
        executor.create_user(username, password, shell, groups)

    def set_locale(self, locale: str) -> None:
        executor.set_locale(locale)

    def set_keymap(self, keymap: str) -> None:
        executor.set_keymap(keymap)

    def set_timezone(self, timezone: str) -> None:
        executor.set_timezone(timezone)

    def run_command(self, username: str, command: Sequence[str]) -> str:
        return executor.run_command_as_user(username, command)

    def run_command_sudo(self, username: str, command: Sequence[str], password: str) -> str:
        return executor.run_command_as_user_with_sudo(username, command, password)

    def remove_initial_session(self) -> bool:
        return executor.remove_initial_session()


class DryrunService:
    """Pretends every change succeeds; nothing is executed."""

    dryrun = True

    def check_network(self) -> bool:
        return True

    def list_locales(self) -> List[str]:
        return list(DEMO_LOCALES)

    def list_keymaps(self) -> List[str]:
        return list(DEMO_KEYMAPS)

    def list_timezones(self) -> List[str]:
        return list(DEMO_TIMEZONES)

    def create_user(self, username: str, password: str, shell: str, groups: Sequence[str]) -> None:
        logger.info(f"Dryrun: {command_string(ServiceOp(OpKind.CREATE_USER, username), shell, groups)}")

    def set_locale(self, locale: str) -> None:
        logger.info(f"Dryrun: {command_string(ServiceOp(OpKind.SET_LOCALE, locale))}")

    def set_keymap(self, keymap: str) -> None:
        logger.info(f"Dryrun: {command_string(ServiceOp(OpKind.SET_KEYMAP, keymap))}")

    def set_timezone(self, timezone: str) -> None:
        logger.info(f"Dryrun: {command_string(ServiceOp(OpKind.SET_TIMEZONE, timezone))}")

    def run_command(self, username: str, command: Sequence[str]) -> str:
        logger.info(f"Dryrun as {username}: {command_string(ServiceOp(OpKind.RUN_COMMAND, args=tuple(command)))}")
        return ""

    def run_command_sudo(self, username: str, command: Sequence[str], password: str) -> str:
        logger.info(f"Dryrun as {username}: {command_string(ServiceOp(OpKind.RUN_COMMAND_SUDO, args=tuple(command)))}")
        return ""

    def remove_initial_session(self) -> bool:
        logger.info("Dryrun: would remove [initial_session] from greetd config")
        return False


def create_service(dryrun: bool):
    """Pick the service for the run mode."""
    return DryrunService() if dryrun else LiveService()
