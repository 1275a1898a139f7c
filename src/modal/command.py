"""
Login command-line parser.

Parses the text typed after ':' on the login screen.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from common.exceptions import CommandParseError


class CommandKind(Enum):
    REBOOT = "reboot"
    POWEROFF = "poweroff"
    SESSION = "session"
    USER = "user"
    LOGIN = "login"
    CANCEL = "cancel"
    HELP = "help"
    QUIT = "quit"


KEYWORDS: Dict[str, CommandKind] = {
    "reboot": CommandKind.REBOOT,
    "rb": CommandKind.REBOOT,
    "poweroff": CommandKind.POWEROFF,
    "shutdown": CommandKind.POWEROFF,
    "po": CommandKind.POWEROFF,
    "session": CommandKind.SESSION,
    "s": CommandKind.SESSION,
    "user": CommandKind.USER,
    "u": CommandKind.USER,
    "login": CommandKind.LOGIN,
    "l": CommandKind.LOGIN,
    "cancel": CommandKind.CANCEL,
    "c": CommandKind.CANCEL,
    "help": CommandKind.HELP,
    "h": CommandKind.HELP,
    "?": CommandKind.HELP,
    "q": CommandKind.QUIT,
    "quit": CommandKind.QUIT,
    "exit": CommandKind.QUIT,
}


@dataclass(frozen=True)
class Command:
    """A parsed command with its optional argument."""
    kind: CommandKind
    arg: Optional[str] = None


def parse_command(text: str) -> Command:
    """
    Parse a command line.

    The keyword is case-insensitive and may be followed by one argument.

    Args:
        text: Raw text typed in command mode

    Returns:
        The parsed command

    Raises:
        CommandParseError: If the line is empty or the keyword is unknown
    """
    text = text.strip()
    if not text:
        raise CommandParseError("empty command")

    keyword, _, rest = text.partition(" ")
    kind = KEYWORDS.get(keyword.lower())
    if kind is None:
        raise CommandParseError(keyword)

    arg = rest.strip() or None
    if kind not in (CommandKind.SESSION, CommandKind.USER):
        arg = None
    return Command(kind, arg)
