"""
Key hints shown in the wizard's status bar.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class StatusHints:
    left: str = ""
    right: str = ""

    @classmethod
    def sidebar_normal(cls) -> "StatusHints":
        return cls("j/k: navigate", "l/Enter: edit  :help")

    @classmethod
    def content_picker_normal(cls) -> "StatusHints":
        return cls("j/k: navigate  Enter: select", "i: filter  Ctrl+h: sidebar")

    @classmethod
    def content_picker_insert(cls) -> "StatusHints":
        return cls("Type to filter", "Esc: normal  Enter: select")

    @classmethod
    def content_form_normal(cls) -> "StatusHints":
        return cls("j/k: fields  i: edit", "Enter: submit  Ctrl+h: sidebar")

    @classmethod
    def content_form_insert(cls) -> "StatusHints":
        return cls("Type to enter text", "Esc: normal  Tab: next field")

    @classmethod
    def command_mode(cls) -> "StatusHints":
        return cls("", "Enter: run  Esc: cancel")

    @classmethod
    def welcome(cls) -> "StatusHints":
        return cls("", "Enter: start setup")

    @classmethod
    def review_step(cls) -> "StatusHints":
        return cls("Review your settings", "Enter: apply  Ctrl+h: sidebar")

    @classmethod
    def update_step(cls, needs_password: bool) -> "StatusHints":
        if needs_password:
            return cls("Password required", "i: enter password  :skip")
        return cls("Space: toggle  Enter: run", ":skip")

    @classmethod
    def reboot_step(cls) -> "StatusHints":
        return cls("Setup complete!", "Enter: reboot system")

    @classmethod
    def network_step(cls, connected: bool) -> "StatusHints":
        if connected:
            return cls("Network connected", "Enter: next  Ctrl+h: sidebar")
        return cls("Network not connected", "Enter: configure  :skip")

    @classmethod
    def locked_step(cls) -> "StatusHints":
        return cls("Step locked", "Complete previous steps first")

    @classmethod
    def executing(cls) -> "StatusHints":
        return cls("Please wait...", "")
