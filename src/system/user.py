"""
System user discovery from /etc/passwd.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

PASSWD_PATH = Path("/etc/passwd")
LOGIN_DEFS_PATH = Path("/etc/login.defs")

DEFAULT_UID_MIN = 1000
DEFAULT_UID_MAX = 60000

HIDDEN_USERS = {"nobody", "nfsnobody", "greeter"}


@dataclass(frozen=True)
class User:
    username: str
    uid: int
    display_name: Optional[str] = None
    home: str = ""
    shell: str = ""

    @property
    def label(self) -> str:
        if self.display_name:
            return f"{self.display_name} ({self.username})"
        return self.username


def read_uid_range(path: Path = LOGIN_DEFS_PATH) -> Tuple[int, int]:
    """Read UID_MIN and UID_MAX from login.defs, with defaults."""
    uid_min, uid_max = DEFAULT_UID_MIN, DEFAULT_UID_MAX
    try:
        text = path.read_text()
    except OSError:
        return uid_min, uid_max

    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or parts[0].startswith("#"):
            continue
        try:
            if parts[0] == "UID_MIN":
                uid_min = int(parts[1])
            elif parts[0] == "UID_MAX":
                uid_max = int(parts[1])
        except ValueError:
            continue
    return uid_min, uid_max


def parse_passwd_line(line: str) -> Optional[User]:
    fields = line.split(":")
    if len(fields) < 7:
        return None
    try:
        uid = int(fields[2])
    except ValueError:
        return None

    username = fields[0]
    gecos = fields[4].split(",")[0].strip()
    display_name = gecos if gecos and gecos != username else None
    return User(
        username=username,
        uid=uid,
        display_name=display_name,
        home=fields[5],
        shell=fields[6].strip(),
    )


def discover_users(
    passwd_path: Path = PASSWD_PATH,
    login_defs_path: Path = LOGIN_DEFS_PATH,
) -> List[User]:
    """
    List login-capable human users.

    Filters by the UID range from login.defs, drops nologin/false shells
    and a fixed set of hidden accounts.

    Returns:
        Users sorted by username
    """
    uid_min, uid_max = read_uid_range(login_defs_path)
    try:
        text = passwd_path.read_text()
    except OSError as e:
        logger.warning(f"Cannot read {passwd_path}: {e}")
        return []

    users = []
    for line in text.splitlines():
        user = parse_passwd_line(line)
        if user is None:
            continue
        if not uid_min <= user.uid <= uid_max:
            continue
        if "nologin" in user.shell or "false" in user.shell:
            continue
        if user.username in HIDDEN_USERS:
            continue
        users.append(user)

    users.sort(key=lambda u: u.username)
    return users
