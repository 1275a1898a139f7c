"""
Rich renderables for the login screen.
"""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from modal import EditMode, InputBuffer

from .controller import Field, LoginController, PowerAction

MODE_STYLES = {
    EditMode.NORMAL: "bold black on blue",
    EditMode.INSERT: "bold black on green",
    EditMode.COMMAND: "bold black on yellow",
}

HELP_LINES = [
    ("i a A I", "enter insert mode"),
    ("Esc", "back to normal mode"),
    ("j k Tab", "switch field"),
    ("h l 0 $", "move cursor"),
    ("x / dd", "delete char / clear field"),
    ("Enter", "log in"),
    ("F2 / F3", "pick user / session"),
    ("F12", "power off"),
    (":session NAME", "select session"),
    (":user NAME", "select user"),
    (":reboot :poweroff", "power actions"),
    (":cancel", "abort authentication"),
]


def _field_line(label: str, buffer: InputBuffer, focused: bool, show_cursor: bool) -> Text:
    text = Text(f"{label:>10}  ", style="bold" if focused else "dim")
    shown = buffer.display("*")
    if focused and show_cursor:
        cursor = buffer.cursor
        text.append(shown[:cursor])
        text.append(shown[cursor:cursor + 1] or " ", style="reverse")
        text.append(shown[cursor + 1:])
    else:
        text.append(shown)
    return text


def _picker(title: str, items, selected: int) -> Panel:
    table = Table(show_header=False, box=None, padding=(0, 1))
    for i, label in enumerate(items):
        marker = ">" if i == selected else " "
        table.add_row(marker, label, style="reverse" if i == selected else "")
    return Panel(table, title=title, subtitle="j/k move, Enter select, Esc close")


def _help() -> Panel:
    table = Table(show_header=False, box=None, padding=(0, 2))
    for key, desc in HELP_LINES:
        table.add_row(Text(key, style="bold cyan"), desc)
    return Panel(table, title="Help", subtitle="Esc to close")


def _confirm(action: PowerAction) -> Panel:
    return Panel(
        Text(f"Really {action.value}? [y/n]", justify="center"),
        title="Confirm",
        border_style="red",
    )


def status_line(ctrl: LoginController) -> Text:
    line = Text(f" {ctrl.mode.display_name} ", style=MODE_STYLES[ctrl.mode])
    if ctrl.mode is EditMode.COMMAND:
        line.append(f" :{ctrl.command_buffer.content}")
    elif ctrl.message is not None:
        style = "bold red" if ctrl.message.is_error else "green"
        line.append(f" {ctrl.message.text}", style=style)
    elif ctrl.working:
        line.append(" Authenticating...", style="yellow")
    return line


def render_login(ctrl: LoginController, title: str = "Login") -> RenderableType:
    """Build the full login screen from controller state."""
    if ctrl.confirm_action is not None:
        body: RenderableType = _confirm(ctrl.confirm_action)
    elif ctrl.show_help:
        body = _help()
    elif ctrl.show_session_picker:
        body = _picker("Sessions", [s.name for s in ctrl.sessions], ctrl.selected_session)
    elif ctrl.show_user_picker:
        body = _picker("Users", [u.label for u in ctrl.users], ctrl.selected_user)
    else:
        editing = ctrl.mode is EditMode.INSERT
        session = ctrl.current_session()
        rows = [
            _field_line("Username", ctrl.username, ctrl.focus is Field.USERNAME, editing),
            _field_line("Password", ctrl.password, ctrl.focus is Field.PASSWORD, editing),
            Text(""),
            Text(f"{'Session':>10}  {session.name if session else '(none)'}", style="cyan"),
        ]
        body = Panel(Group(*rows), title=title, subtitle="F2 users  F3 sessions  :help")

    return Group(body, status_line(ctrl))
