"""
Desktop session discovery.

Reads wayland-sessions and xsessions .desktop entries from XDG_DATA_DIRS.
"""

from __future__ import annotations

import configparser
import logging
import os
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIRS = "/usr/local/share:/usr/share"


class SessionType(Enum):
    WAYLAND = "wayland"
    X11 = "x11"


SESSION_SUBDIRS = (
    ("wayland-sessions", SessionType.WAYLAND),
    ("xsessions", SessionType.X11),
)


@dataclass(frozen=True)
class Session:
    """A launchable desktop session."""
    name: str
    slug: str
    exec: str
    session_type: SessionType
    desktop_names: List[str] = field(default_factory=list)

    def build_cmd(self) -> List[str]:
        """Split Exec into argv, falling back to the raw string."""
        try:
            argv = shlex.split(self.exec)
        except ValueError:
            argv = []
        return argv or [self.exec]

    def build_env(self) -> List[str]:
        env = [f"XDG_SESSION_TYPE={self.session_type.value}"]
        if self.desktop_names:
            env.append(f"XDG_CURRENT_DESKTOP={':'.join(self.desktop_names)}")
        return env


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def parse_desktop_file(path: Path, session_type: SessionType) -> Optional[Session]:
    """
    Parse one session .desktop file.

    Args:
        path: Path to the .desktop file
        session_type: Type implied by the directory it was found in

    Returns:
        The session, or None if hidden, incomplete or unreadable
    """
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str
    try:
        parser.read(path, encoding="utf-8")
    except (configparser.Error, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Skipping unreadable session file {path}: {e}")
        return None

    if not parser.has_section("Desktop Entry"):
        return None
    entry = parser["Desktop Entry"]

    if _is_true(entry.get("Hidden")) or _is_true(entry.get("NoDisplay")):
        return None

    name = entry.get("Name")
    exec_line = entry.get("Exec")
    if not name or not exec_line:
        return None

    desktop_names = [
        n for n in (entry.get("DesktopNames") or "").split(";") if n
    ]
    return Session(
        name=name,
        slug=path.stem,
        exec=exec_line,
        session_type=session_type,
        desktop_names=desktop_names,
    )


def discover_sessions(data_dirs: Optional[str] = None) -> List[Session]:
    """
    Find installed sessions.

    Args:
        data_dirs: Colon-separated search path (default: XDG_DATA_DIRS)

    Returns:
        Sessions sorted by name (case-insensitive), unique by slug
    """
    if data_dirs is None:
        data_dirs = os.environ.get("XDG_DATA_DIRS") or DEFAULT_DATA_DIRS

    sessions: List[Session] = []
    for base in data_dirs.split(":"):
        if not base:
            continue
        for subdir, session_type in SESSION_SUBDIRS:
            directory = Path(base) / subdir
            if not directory.is_dir():
                continue
            for path in sorted(directory.glob("*.desktop")):
                session = parse_desktop_file(path, session_type)
                if session:
                    sessions.append(session)

    sessions.sort(key=lambda s: s.name.lower())

    seen = set()
    unique = []
    for session in sessions:
        if session.slug in seen:
            continue
        seen.add(session.slug)
        unique.append(session)

    logger.info(f"Discovered {len(unique)} sessions")
    return unique
