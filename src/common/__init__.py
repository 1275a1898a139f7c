"""
Vimgreet Common Utilities

Shared error types, logging setup and cleanup handling for the greeter
and the onboarding wizard.
"""

from .exceptions import (
    VimgreetError, GreetdError, SocketNotFoundError, IpcError, CodecError,
    AuthFailedError, SessionStartError, CommandParseError,
    OnboardError, CommandFailedError, UserCreationError, ConfigLoadError,
    PowerError,
)
from .logging_config import setup_logging, resolve_level, JSONFormatter
from .resources import CleanupRegistry, register_cleanup, cleanup_all, install_signal_handlers

__all__ = [
    # Exceptions
    "VimgreetError", "GreetdError", "SocketNotFoundError", "IpcError", "CodecError",
    "AuthFailedError", "SessionStartError", "CommandParseError",
    "OnboardError", "CommandFailedError", "UserCreationError", "ConfigLoadError",
    "PowerError",
    # Logging
    "setup_logging", "resolve_level", "JSONFormatter",
    # Resources
    "CleanupRegistry", "register_cleanup", "cleanup_all", "install_signal_handlers",
]
