"""
vimgreet Greeter

Modal login screen speaking the greetd IPC protocol.
"""

from .ipc import (
    GreetdClient, SocketTransport, DemoTransport,
    Success, PromptSecret, PromptVisible, Info, AuthError,
    encode_frame, decode_payload, to_auth_response,
)
from .controller import LoginController, GreeterAction, PowerAction, Field, AuthState

__all__ = [
    # IPC
    "GreetdClient", "SocketTransport", "DemoTransport",
    "Success", "PromptSecret", "PromptVisible", "Info", "AuthError",
    "encode_frame", "decode_payload", "to_auth_response",
    # Controller
    "LoginController", "GreeterAction", "PowerAction", "Field", "AuthState",
]
