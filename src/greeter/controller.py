"""
Login screen controller.

Owns the username and password buffers, the session and user pickers,
and drives the greetd handshake. The front-end feeds it KeyPress values
and performs the GreeterAction it returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from common.exceptions import CommandParseError, VimgreetError
from modal import (
    Command,
    CommandKind,
    EditAction,
    EditMode,
    InputBuffer,
    KeyPress,
    apply_edit_key,
    parse_command,
)
from system.session import Session
from system.user import User

from .ipc import (
    AuthError,
    GreetdClient,
    Info,
    PromptSecret,
    PromptVisible,
    Success,
)

logger = logging.getLogger(__name__)

# Guards against a broker that never stops prompting
MAX_AUTH_ROUNDS = 16


class Field(Enum):
    USERNAME = auto()
    PASSWORD = auto()

    def other(self) -> "Field":
        return Field.PASSWORD if self is Field.USERNAME else Field.USERNAME


class PowerAction(Enum):
    REBOOT = "reboot"
    POWEROFF = "poweroff"


class GreeterAction(Enum):
    """Side effects the front-end must carry out for the controller."""
    LOGIN = auto()
    CANCEL = auto()
    REBOOT = auto()
    POWEROFF = auto()


class AuthState(Enum):
    IDLE = auto()
    # greetd sent a prompt we could not answer yet; next submit answers it
    AWAITING_ANSWER = auto()


@dataclass
class StatusMessage:
    text: str
    is_error: bool = False


class LoginController:
    """
    State machine for the login screen.

    Starts in Insert mode on the username field.
    """

    def __init__(
        self,
        sessions: Optional[List[Session]] = None,
        users: Optional[List[User]] = None,
        demo: bool = False,
    ):
        self.mode = EditMode.INSERT
        self.focus = Field.USERNAME
        self.username = InputBuffer()
        self.password = InputBuffer.masked()
        self.command_buffer = InputBuffer()

        self.sessions: List[Session] = list(sessions or [])
        self.selected_session = 0
        self.users: List[User] = list(users or [])
        self.selected_user = 0

        self.message: Optional[StatusMessage] = None
        self.working = False
        self.auth_state = AuthState.IDLE
        self.pending_prompt: Optional[str] = None
        self.should_exit = False
        self.exit_success = False

        self.show_session_picker = False
        self.show_user_picker = False
        self.show_help = False
        self.confirm_action: Optional[PowerAction] = None
        self.demo = demo
        self._pending_dd = False

    # ------------------------------------------------------------------
    # Messages and accessors
    # ------------------------------------------------------------------

    def set_error(self, text: str) -> None:
        logger.warning(f"Login error: {text}")
        self.message = StatusMessage(text, is_error=True)

    def set_info(self, text: str) -> None:
        self.message = StatusMessage(text, is_error=False)

    def clear_message(self) -> None:
        self.message = None

    def focused_buffer(self) -> InputBuffer:
        return self.username if self.focus is Field.USERNAME else self.password

    def current_session(self) -> Optional[Session]:
        if 0 <= self.selected_session < len(self.sessions):
            return self.sessions[self.selected_session]
        return None

    def wipe(self) -> None:
        """Zero every secret this controller holds."""
        self.password.wipe()

    # ------------------------------------------------------------------
    # Key handling
    # ------------------------------------------------------------------

    def handle_key(self, key: KeyPress) -> Optional[GreeterAction]:
        """
        Route one key press.

        Returns:
            An action the caller must perform, or None
        """
        if self.message is not None and not self.working:
            self.clear_message()

        if self.confirm_action is not None:
            return self._handle_confirm(key)

        if self.show_help:
            if key.is_named("escape") or key.is_char("q"):
                self.show_help = False
            return None

        if self.show_session_picker or self.show_user_picker:
            self._handle_picker(key)
            return None

        if self.mode is EditMode.NORMAL:
            return self._handle_normal(key)
        if self.mode is EditMode.INSERT:
            return self._handle_insert(key)
        return self._handle_command(key)

    def _handle_confirm(self, key: KeyPress) -> Optional[GreeterAction]:
        if key.is_char("y", "Y"):
            action = self.confirm_action
            self.confirm_action = None
            return GreeterAction.REBOOT if action is PowerAction.REBOOT else GreeterAction.POWEROFF
        if key.is_char("n", "N") or key.is_named("escape"):
            self.confirm_action = None
        return None

    def _handle_picker(self, key: KeyPress) -> None:
        if self.show_session_picker:
            count, index = len(self.sessions), self.selected_session
        else:
            count, index = len(self.users), self.selected_user

        if key.is_named("escape") or key.is_char("q"):
            self.show_session_picker = False
            self.show_user_picker = False
            return
        if key.is_char("j") or key.is_named("down"):
            index = min(index + 1, max(count - 1, 0))
        elif key.is_char("k") or key.is_named("up"):
            index = max(index - 1, 0)
        elif key.is_named("enter"):
            if self.show_user_picker and 0 <= index < count:
                self.username.set(self.users[index].username)
            self.show_session_picker = False
            self.show_user_picker = False

        if self.show_session_picker:
            self.selected_session = index
        elif self.show_user_picker:
            self.selected_user = index

    def _enter_insert(self) -> None:
        self.mode = self.mode.transition(EditAction.ENTER_INSERT)

    def _handle_normal(self, key: KeyPress) -> Optional[GreeterAction]:
        buffer = self.focused_buffer()

        if key.is_char("d"):
            if self._pending_dd:
                buffer.clear()
                self._pending_dd = False
            else:
                self._pending_dd = True
            return None
        self._pending_dd = False

        if key.is_char("i"):
            self._enter_insert()
        elif key.is_char("a"):
            self._enter_insert()
            buffer.move_right()
        elif key.is_char("A"):
            self._enter_insert()
            buffer.move_end()
        elif key.is_char("I"):
            self._enter_insert()
            buffer.move_start()
        elif key.is_char(":"):
            self.mode = self.mode.transition(EditAction.ENTER_COMMAND)
            self.command_buffer.clear()
        elif key.is_char("h") or key.is_named("left"):
            buffer.move_left()
        elif key.is_char("l") or key.is_named("right"):
            buffer.move_right()
        elif key.is_char("j", "k") or key.is_named("down", "up", "tab", "backtab"):
            self.focus = self.focus.other()
        elif key.is_char("0"):
            buffer.move_start()
        elif key.is_char("$"):
            buffer.move_end()
        elif key.is_char("x"):
            buffer.delete_forward()
        elif key.is_named("enter"):
            return GreeterAction.LOGIN
        elif key.is_named("f2"):
            self.show_user_picker = bool(self.users)
        elif key.is_named("f3"):
            self.show_session_picker = bool(self.sessions)
        elif key.is_named("f12"):
            self.confirm_action = PowerAction.POWEROFF
        return None

    def _handle_insert(self, key: KeyPress) -> Optional[GreeterAction]:
        if key.is_named("escape"):
            self.mode = self.mode.transition(EditAction.ESCAPE)
            return None

        if key.is_named("enter"):
            if self.focus is Field.USERNAME:
                if not self.username.is_empty():
                    self.focus = Field.PASSWORD
                    self.mode = self.mode.transition(EditAction.ESCAPE)
                return None
            self.mode = self.mode.transition(EditAction.ESCAPE)
            return GreeterAction.LOGIN

        if key.is_named("tab", "backtab"):
            self.focus = self.focus.other()
            return None

        apply_edit_key(self.focused_buffer(), key)
        return None

    def _handle_command(self, key: KeyPress) -> Optional[GreeterAction]:
        if key.is_named("escape"):
            self.mode = self.mode.transition(EditAction.ESCAPE)
            self.command_buffer.clear()
            return None

        if key.is_named("enter"):
            text = self.command_buffer.take()
            self.mode = self.mode.transition(EditAction.EXECUTE)
            return self.execute_command(text)

        if key.is_named("backspace"):
            if self.command_buffer.is_empty():
                self.mode = self.mode.transition(EditAction.ESCAPE)
            else:
                self.command_buffer.delete_back()
            return None

        apply_edit_key(self.command_buffer, key)
        return None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def execute_command(self, text: str) -> Optional[GreeterAction]:
        try:
            command = parse_command(text)
        except CommandParseError as e:
            self.set_error(e.message)
            return None
        return self._run_command(command)

    def _run_command(self, command: Command) -> Optional[GreeterAction]:
        kind = command.kind
        if kind is CommandKind.REBOOT:
            self.confirm_action = PowerAction.REBOOT
        elif kind is CommandKind.POWEROFF:
            self.confirm_action = PowerAction.POWEROFF
        elif kind is CommandKind.SESSION:
            if command.arg is None:
                self.show_session_picker = bool(self.sessions)
            else:
                self.select_session(command.arg)
        elif kind is CommandKind.USER:
            if command.arg is None:
                self.show_user_picker = bool(self.users)
            else:
                self.select_user(command.arg)
        elif kind in (CommandKind.LOGIN, CommandKind.QUIT):
            return GreeterAction.LOGIN
        elif kind is CommandKind.CANCEL:
            return GreeterAction.CANCEL
        elif kind is CommandKind.HELP:
            self.show_help = True
        return None

    def select_session(self, name: str) -> bool:
        needle = name.lower()
        for i, session in enumerate(self.sessions):
            if needle in session.name.lower() or session.slug == name:
                self.selected_session = i
                self.set_info(f"Session: {session.name}")
                return True
        self.set_error(f"Session not found: {name}")
        return False

    def select_user(self, name: str) -> bool:
        needle = name.lower()
        for i, user in enumerate(self.users):
            if user.username.lower() == needle:
                self.selected_user = i
                self.username.set(user.username)
                return True
        self.set_error(f"User not found: {name}")
        return False

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, client: GreetdClient) -> None:
        """
        Run the greetd handshake with the current credentials.

        The password buffer answers the first secret prompt. A further
        prompt is shown to the user and answered by the next submit.
        """
        if self.working:
            return

        username = self.username.content
        if not username:
            self.set_error("Username is required")
            return

        self.working = True
        try:
            if self.auth_state is AuthState.AWAITING_ANSWER:
                logger.info(f"Answering pending prompt for {username}")
                self.auth_state = AuthState.IDLE
                self.pending_prompt = None
                reply = client.post_auth_response(self.password.take())
            else:
                logger.info(f"Starting authentication for {username}")
                reply = client.create_session(username)
            self._drive_handshake(client, reply)
        except VimgreetError as e:
            self._fail(client, e.message)

    def _drive_handshake(self, client: GreetdClient, reply) -> None:
        answered_secret = False
        for _ in range(MAX_AUTH_ROUNDS):
            if isinstance(reply, Success):
                self.password.clear()
                self.start_session(client)
                return
            if isinstance(reply, AuthError):
                self._fail(client, reply.text)
                return
            if isinstance(reply, Info):
                self.set_info(reply.text)
                reply = client.post_auth_response(None)
                continue
            if isinstance(reply, (PromptSecret, PromptVisible)):
                if isinstance(reply, PromptSecret) and not answered_secret and not self.password.is_empty():
                    answered_secret = True
                    reply = client.post_auth_response(self.password.take())
                    continue
                self._await_answer(reply.prompt)
                return
            self._fail(client, "Unexpected response from greetd")
            return
        self._fail(client, "Too many authentication prompts")

    def _await_answer(self, prompt: str) -> None:
        self.password.clear()
        self.auth_state = AuthState.AWAITING_ANSWER
        self.pending_prompt = prompt.strip()
        self.focus = Field.PASSWORD
        self.working = False
        self.set_info(self.pending_prompt)

    def _fail(self, client: GreetdClient, text: str) -> None:
        self.working = False
        self.set_error(text)
        self.password.clear()
        self.auth_state = AuthState.IDLE
        self.pending_prompt = None
        self._cancel_quietly(client)

    def _cancel_quietly(self, client: GreetdClient) -> None:
        try:
            client.cancel_session()
        except VimgreetError as e:
            logger.debug(f"cancel_session after failure: {e}")

    def start_session(self, client: GreetdClient) -> None:
        session = self.current_session()
        if session is None:
            self._fail(client, "No session selected")
            return

        try:
            client.start_session(session.build_cmd(), session.build_env())
        except VimgreetError as e:
            self._fail(client, e.message)
            return

        logger.info(f"Session {session.slug} started for {self.username.content}")
        self.working = False
        self.should_exit = True
        self.exit_success = True

    def cancel(self, client: GreetdClient) -> None:
        """User-initiated abort of the current attempt."""
        self._cancel_quietly(client)
        self.password.clear()
        self.auth_state = AuthState.IDLE
        self.pending_prompt = None
        self.working = False
        self.set_info("Login cancelled")

    def perform(self, action: Optional[GreeterAction], client: GreetdClient, power) -> None:
        """Carry out an action returned by handle_key."""
        if action is None:
            return
        if action is GreeterAction.LOGIN:
            self.login(client)
        elif action is GreeterAction.CANCEL:
            self.cancel(client)
        elif action is GreeterAction.REBOOT:
            try:
                power.reboot()
            except VimgreetError as e:
                self.set_error(e.message)
        elif action is GreeterAction.POWEROFF:
            try:
                power.poweroff()
            except VimgreetError as e:
                self.set_error(e.message)
