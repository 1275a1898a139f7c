"""
Vimgreet Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, user feedback, and programmatic error handling.
"""

from typing import Optional, Dict, Any


class VimgreetError(Exception):
    """
    Base exception for all vimgreet errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Session broker errors
# =============================================================================

class GreetdError(VimgreetError):
    """Base for errors talking to the login session broker."""
    pass


class SocketNotFoundError(GreetdError):
    """Broker socket address is not available."""
    def __init__(self, variable: str = "GREETD_SOCK"):
        super().__init__(
            f"greetd socket not found ({variable} not set)",
            code="SOCKET_NOT_FOUND",
            details={"variable": variable},
            recoverable=False,
        )


class IpcError(GreetdError):
    """I/O failure on the broker connection."""
    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(
            f"IPC error: {message}",
            code="IPC_ERROR",
            cause=cause,
        )


class CodecError(GreetdError):
    """A frame could not be encoded or decoded."""
    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Codec error: {message}",
            code="CODEC_ERROR",
            cause=cause,
        )


class AuthFailedError(GreetdError):
    """Broker rejected an authentication request."""
    def __init__(self, reason: str):
        super().__init__(
            f"Authentication failed: {reason}",
            code="AUTH_FAILED",
            details={"reason": reason},
        )


class SessionStartError(GreetdError):
    """Broker refused to start the selected session."""
    def __init__(self, reason: str):
        super().__init__(
            f"Session failed: {reason}",
            code="SESSION_FAILED",
            details={"reason": reason},
        )
        self.reason = reason


# =============================================================================
# Command-line errors
# =============================================================================

class CommandParseError(VimgreetError):
    """A command-line entry was not understood."""
    def __init__(self, text: str):
        super().__init__(
            f"Unknown command: {text}",
            code="UNKNOWN_COMMAND",
            details={"command": text},
        )
        self.text = text


# =============================================================================
# Onboarding errors
# =============================================================================

class OnboardError(VimgreetError):
    """Base for onboarding wizard errors."""
    pass


class CommandFailedError(OnboardError):
    """A system command exited unsuccessfully."""
    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(
            message,
            code="COMMAND_FAILED",
            details={"command": command} if command else None,
        )


class UserCreationError(OnboardError):
    """Creating the user account failed."""
    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(
            message,
            code="USER_CREATION_FAILED",
            cause=cause,
        )


class ConfigLoadError(OnboardError):
    """Onboarding configuration could not be read or parsed."""
    def __init__(self, path: str, reason: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to load config {path}: {reason}",
            code="CONFIG_LOAD_FAILED",
            details={"path": path, "reason": reason},
            cause=cause,
            recoverable=False,
        )


class PowerError(VimgreetError):
    """Reboot or power-off request failed."""
    def __init__(self, action: str, reason: str):
        super().__init__(
            f"{action} failed: {reason}",
            code="POWER_FAILED",
            details={"action": action, "reason": reason},
        )
