"""
Textual front-end for the login screen.
"""

from __future__ import annotations

import logging

from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from modal import KeyPress
from system.power import PowerControl

from .controller import LoginController
from .ipc import GreetdClient
from .view import render_login

logger = logging.getLogger(__name__)

TICK_SECONDS = 0.25


class GreeterApp(App):
    """Full-screen login prompt driven by LoginController."""

    TITLE = "vimgreet"
    CSS = """
    Screen {
        align: center middle;
    }
    #login {
        width: 64;
        height: auto;
    }
    """
    # Keys are routed to the controller, not to textual bindings
    BINDINGS = []

    def __init__(
        self,
        controller: LoginController,
        client: GreetdClient,
        power: PowerControl,
    ):
        super().__init__()
        self.controller = controller
        self.client = client
        self.power = power

    def compose(self) -> ComposeResult:
        yield Static(id="login")

    def on_mount(self) -> None:
        self.set_interval(TICK_SECONDS, self.refresh_view)
        self.refresh_view()

    def refresh_view(self) -> None:
        self.query_one("#login", Static).update(render_login(self.controller))

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        key = KeyPress.from_textual(event)
        action = self.controller.handle_key(key)
        self.controller.perform(action, self.client, self.power)
        if self.controller.should_exit:
            self.exit(self.controller.exit_success)
            return
        self.refresh_view()
