"""
greetd IPC client.

Talks to the greetd daemon over the Unix socket named by GREETD_SOCK.
Every message is a 32-bit native-endian length followed by UTF-8 JSON,
and every request gets exactly one response:

    -> {"type": "create_session", "username": "alice"}
    <- {"type": "auth_message", "auth_message_type": "secret", "auth_message": "Password: "}
    -> {"type": "post_auth_message_response", "response": "..."}
    <- {"type": "success"}
    -> {"type": "start_session", "cmd": ["sway"], "env": ["XDG_SESSION_TYPE=wayland"]}
    <- {"type": "success"}
"""
from __future__ import annotations

import json
import logging
import os
import socket
import struct
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from common.exceptions import (
    AuthFailedError,
    CodecError,
    IpcError,
    SessionStartError,
    SocketNotFoundError,
)

logger = logging.getLogger(__name__)

SOCKET_ENV = "GREETD_SOCK"
HEADER = struct.Struct("=I")

DEMO_PASSWORD = "demo"


# =============================================================================
# Authentication exchange
# =============================================================================

@dataclass(frozen=True)
class Success:
    """Request accepted."""


@dataclass(frozen=True)
class PromptSecret:
    """Broker asks for a hidden answer, usually a password."""
    prompt: str


@dataclass(frozen=True)
class PromptVisible:
    """Broker asks for a visible answer."""
    prompt: str


@dataclass(frozen=True)
class Info:
    """Informational text to show the user."""
    text: str


@dataclass(frozen=True)
class AuthError:
    """Broker reported a failure for this attempt."""
    text: str


AuthResponse = Union[Success, PromptSecret, PromptVisible, Info, AuthError]


# =============================================================================
# Wire codec
# =============================================================================

def create_session_request(username: str) -> Dict[str, Any]:
    return {"type": "create_session", "username": username}


def auth_response_request(response: Optional[str]) -> Dict[str, Any]:
    return {"type": "post_auth_message_response", "response": response}


def start_session_request(cmd: List[str], env: List[str]) -> Dict[str, Any]:
    return {"type": "start_session", "cmd": list(cmd), "env": list(env)}


def cancel_session_request() -> Dict[str, Any]:
    return {"type": "cancel_session"}


def encode_frame(message: Dict[str, Any]) -> bytes:
    """Serialize a message into one length-prefixed frame."""
    try:
        payload = json.dumps(message).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise CodecError(f"cannot encode {message.get('type')}", cause=e)
    return HEADER.pack(len(payload)) + payload


def decode_payload(payload: bytes) -> Dict[str, Any]:
    """Parse a frame body into a message dict."""
    try:
        message = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CodecError("invalid JSON in response", cause=e)
    if not isinstance(message, dict) or "type" not in message:
        raise CodecError("response has no type")
    return message


def to_auth_response(message: Dict[str, Any]) -> AuthResponse:
    """Map a broker response onto the authentication exchange."""
    kind = message.get("type")
    if kind == "success":
        return Success()

    if kind == "auth_message":
        text = message.get("auth_message", "")
        msg_type = message.get("auth_message_type")
        if msg_type == "secret":
            return PromptSecret(text)
        if msg_type == "visible":
            return PromptVisible(text)
        if msg_type == "info":
            return Info(text)
        if msg_type == "error":
            return AuthError(text)
        raise CodecError(f"unknown auth_message_type {msg_type!r}")

    if kind == "error":
        if message.get("error_type") == "auth_error":
            return AuthError("Authentication failed")
        return AuthError(message.get("description", "Unknown error"))

    raise CodecError(f"unknown response type {kind!r}")


def _redacted(message: Dict[str, Any]) -> Dict[str, Any]:
    if "response" in message and message["response"] is not None:
        return {**message, "response": "<redacted>"}
    return message


# =============================================================================
# Transports
# =============================================================================

class SocketTransport:
    """
    Half-duplex request/response over a Unix stream socket.

    One request is in flight at a time; the lock keeps a request and its
    response paired even if called from several threads.
    """

    def __init__(self, socket_path: str, timeout: Optional[float] = None):
        self.socket_path = socket_path
        self.timeout = timeout
        self._socket: Optional[socket.socket] = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        try:
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.settimeout(self.timeout)
            sock.connect(self.socket_path)
        except OSError as e:
            raise IpcError(f"cannot connect to {self.socket_path}", cause=e)
        self._socket = sock
        logger.info(f"Connected to greetd at {self.socket_path}")

    def close(self) -> None:
        if self._socket:
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Error closing greetd socket: {e}")
            self._socket = None

    def request(self, message: Dict[str, Any]) -> Dict[str, Any]:
        """Send one message and wait for its response."""
        if self._socket is None:
            raise IpcError("not connected")

        frame = encode_frame(message)
        with self._lock:
            try:
                self._socket.sendall(frame)
                header = self._recv_exact(HEADER.size)
                (length,) = HEADER.unpack(header)
                payload = self._recv_exact(length)
            except socket.timeout as e:
                raise IpcError("timed out waiting for greetd", cause=e)
            except OSError as e:
                raise IpcError(str(e), cause=e)

        response = decode_payload(payload)
        logger.debug(f"greetd {_redacted(message)} -> {response}")
        return response

    def _recv_exact(self, size: int) -> bytes:
        buf = b""
        while len(buf) < size:
            chunk = self._socket.recv(size - len(buf))
            if not chunk:
                raise IpcError("connection closed by greetd")
            buf += chunk
        return buf


class DemoTransport:
    """
    Stand-in for greetd that performs no I/O.

    Any user is accepted with the password "demo".
    """

    def request(self, message: Dict[str, Any]) -> Dict[str, Any]:
        kind = message.get("type")
        if kind == "create_session":
            logger.info(f"Demo: create_session for {message.get('username')}")
            return {
                "type": "auth_message",
                "auth_message_type": "secret",
                "auth_message": "Password: ",
            }
        if kind == "post_auth_message_response":
            if message.get("response") == DEMO_PASSWORD:
                return {"type": "success"}
            return {
                "type": "error",
                "error_type": "error",
                "description": f"Invalid password (hint: use '{DEMO_PASSWORD}')",
            }
        if kind == "start_session":
            logger.info(f"Demo: would start {message.get('cmd')} with {message.get('env')}")
            return {"type": "success"}
        if kind == "cancel_session":
            logger.info("Demo: cancel_session")
            return {"type": "success"}
        raise CodecError(f"unknown request type {kind!r}")

    def close(self) -> None:
        pass


# =============================================================================
# Client
# =============================================================================

class GreetdClient:
    """
    Request-level greetd client.

    Example:
        client = GreetdClient.connect()
        reply = client.create_session("alice")
        if isinstance(reply, PromptSecret):
            reply = client.post_auth_response(password)
    """

    def __init__(self, transport):
        self._transport = transport

    @classmethod
    def connect(cls, demo: bool = False) -> "GreetdClient":
        """
        Open a client.

        Args:
            demo: Use the no-op demo transport instead of a socket

        Raises:
            SocketNotFoundError: GREETD_SOCK is not set
            IpcError: The socket could not be opened
        """
        if demo:
            logger.info("Using demo greetd transport")
            return cls(DemoTransport())

        path = os.environ.get(SOCKET_ENV)
        if not path:
            raise SocketNotFoundError(SOCKET_ENV)
        transport = SocketTransport(path)
        transport.connect()
        return cls(transport)

    @property
    def is_demo(self) -> bool:
        return isinstance(self._transport, DemoTransport)

    def close(self) -> None:
        self._transport.close()

    def create_session(self, username: str) -> AuthResponse:
        return to_auth_response(self._transport.request(create_session_request(username)))

    def post_auth_response(self, response: Optional[str]) -> AuthResponse:
        return to_auth_response(self._transport.request(auth_response_request(response)))

    def start_session(self, cmd: List[str], env: List[str]) -> None:
        """
        Ask greetd to start a session once authentication succeeded.

        Raises:
            SessionStartError: greetd refused or answered unexpectedly
        """
        response = self._transport.request(start_session_request(cmd, env))
        kind = response.get("type")
        if kind == "success":
            return
        if kind == "error":
            raise SessionStartError(response.get("description", "Unknown error"))
        raise SessionStartError("Unexpected response")

    def cancel_session(self) -> None:
        """
        Abort the current authentication.

        Raises:
            AuthFailedError: greetd reported an error
        """
        response = self._transport.request(cancel_session_request())
        if response.get("type") == "error":
            raise AuthFailedError(response.get("description", "Unknown error"))
