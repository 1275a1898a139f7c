"""
System collaborators: sessions, users and power control.
"""

from .session import Session, SessionType, discover_sessions, parse_desktop_file
from .user import User, discover_users, read_uid_range
from .power import PowerControl

__all__ = [
    "Session", "SessionType", "discover_sessions", "parse_desktop_file",
    "User", "discover_users", "read_uid_range",
    "PowerControl",
]
