"""
Textual front-end for the setup wizard.
"""

from __future__ import annotations

import logging
import subprocess

from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from modal import KeyPress
from system.power import PowerControl

from .view import render_wizard
from .wizard import OnboardWizard, WizardAction

logger = logging.getLogger(__name__)

TICK_SECONDS = 0.25


class OnboardApp(App):
    """
    Full-screen wizard driven by OnboardWizard.

    The app exits with True when the caller should continue into the
    login screen (dry runs only).
    """

    TITLE = "vimgreet setup"
    CSS = """
    #wizard {
        height: 100%;
    }
    """
    BINDINGS = []

    def __init__(self, wizard: OnboardWizard, power: PowerControl):
        super().__init__()
        self.wizard = wizard
        self.power = power

    def compose(self) -> ComposeResult:
        yield Static(id="wizard")

    def on_mount(self) -> None:
        self.set_interval(TICK_SECONDS, self.on_tick)
        self.refresh_view()

    def on_tick(self) -> None:
        self.wizard.tick()
        self.refresh_view()

    def refresh_view(self) -> None:
        self.query_one("#wizard", Static).update(render_wizard(self.wizard))

    def launch_network_program(self) -> None:
        """Hand the terminal to the network program until it exits."""
        network = self.wizard.config.network
        argv = [network.program, *network.args]
        logger.info(f"Launching network program: {argv}")
        error = None
        with self.suspend():
            try:
                result = subprocess.run(argv)
                if result.returncode != 0:
                    error = f"{network.program} exited with code {result.returncode}"
            except OSError as e:
                error = f"Failed to launch {network.program}: {e}"
        self.wizard.network_program_finished(error)

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        key = KeyPress.from_textual(event)
        action = self.wizard.handle_key(key)
        pending = self.wizard.perform(action, self.power)

        if pending is WizardAction.LAUNCH_NETWORK:
            self.launch_network_program()
        elif pending is WizardAction.TRANSITION_TO_LOGIN:
            self.exit(True)
            return

        if self.wizard.should_exit:
            self.exit(False)
            return
        self.refresh_view()
