"""
Rich renderables for the setup wizard.

Everything here reads wizard state and returns renderables; nothing
mutates the wizard.
"""

from __future__ import annotations

from typing import List, Optional

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from modal import EditMode, InputBuffer

from .steps import StepId, StepResult, TaskState
from .wizard import ContentFocus, OnboardWizard, PanelFocus

MODE_STYLES = {
    EditMode.NORMAL: "bold black on blue",
    EditMode.INSERT: "bold black on green",
    EditMode.COMMAND: "bold black on yellow",
}

RESULT_MARKS = {
    StepResult.PENDING: (" ", ""),
    StepResult.COMPLETED: ("✓", "green"),
    StepResult.SKIPPED: ("-", "yellow"),
    StepResult.FAILED: ("✗", "red"),
    StepResult.LOCKED: ("#", "dim"),
}

TASK_MARKS = {
    TaskState.PENDING: ("○", "dim"),
    TaskState.SUCCESS: ("✓", "green"),
    TaskState.FAILED: ("✗", "red"),
}

HELP_LINES = [
    ("j / k", "move"),
    ("Ctrl+h / Ctrl+l", "sidebar / content"),
    ("i a", "insert mode"),
    ("Esc", "normal mode"),
    ("Enter", "select or submit"),
    ("Space", "toggle package"),
    ("1-9", "jump to step"),
    (":next :skip", "move on"),
    (":submit", "run the current step"),
    (":finish", "finish setup"),
    (":reboot :poweroff", "power actions"),
    (":cancel", "exit setup"),
]

PICKER_ROWS = 12


def _field(label: str, buffer: InputBuffer, focused: bool, editing: bool) -> Text:
    text = Text(f"{label:>18}  ", style="bold" if focused else "dim")
    shown = buffer.display("*")
    if focused and editing:
        cursor = buffer.cursor
        text.append(shown[:cursor])
        text.append(shown[cursor:cursor + 1] or " ", style="reverse")
        text.append(shown[cursor + 1:])
    else:
        text.append(shown or "_", style="" if shown else "dim")
    return text


def _sidebar(wizard: OnboardWizard) -> Panel:
    table = Table(show_header=False, box=None, padding=(0, 1))
    for i, item in enumerate(wizard.menu_items):
        mark, style = RESULT_MARKS[wizard.step_results[i]]
        row_style = "reverse" if i == wizard.selected_step else ""
        if wizard.step_results[i] is StepResult.LOCKED:
            row_style += " dim"
        table.add_row(
            Text(f"{i + 1}", style="dim"),
            Text(mark, style=style),
            Text(item.id.short_name),
            style=row_style.strip(),
        )
    border = "cyan" if wizard.panel_focus is PanelFocus.SIDEBAR else "white"
    return Panel(table, title="Steps", border_style=border, width=20)


def _picker(wizard: OnboardWizard, title: str) -> RenderableType:
    items = wizard.filtered_picker_items()
    filtering = wizard.mode is EditMode.INSERT and wizard.content_focus is ContentFocus.PICKER
    rows: List[RenderableType] = [
        _field(f"Filter {title.lower()}", wizard.picker_filter, filtering, filtering),
        Text(""),
    ]
    start = max(0, wizard.picker_selection - PICKER_ROWS // 2)
    for i, value in enumerate(items[start:start + PICKER_ROWS], start=start):
        selected = i == wizard.picker_selection
        rows.append(Text(f"{'>' if selected else ' '} {value}", style="reverse" if selected else ""))
    if not items:
        rows.append(Text("No matches", style="dim"))
    return Group(*rows)


def _user_form(wizard: OnboardWizard) -> RenderableType:
    editing = wizard.mode is EditMode.INSERT
    in_form = wizard.content_focus is ContentFocus.INPUT_FIELD
    fields = [
        ("Username", wizard.username),
        ("Password", wizard.password),
        ("Confirm password", wizard.password_confirm),
    ]
    rows: List[RenderableType] = [
        _field(label, buffer, in_form and wizard.field_index == i, editing)
        for i, (label, buffer) in enumerate(fields)
    ]
    groups = ", ".join(wizard.config.user.groups) or "(none)"
    rows.append(Text(""))
    rows.append(Text(f"Shell: {wizard.config.user.shell}   Groups: {groups}", style="dim"))
    return Group(*rows)


def _network(wizard: OnboardWizard) -> RenderableType:
    if wizard.network_connected:
        return Text("Connected to the internet.", style="green")
    return Group(
        Text("Not connected.", style="yellow"),
        Text(f"Press Enter to run {wizard.config.network.program}."),
    )


def _review(wizard: OnboardWizard) -> RenderableType:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Username", wizard.username.content or "(not set)")
    table.add_row("Locale", wizard.selected_locale or "(unchanged)")
    table.add_row("Keyboard", wizard.selected_keyboard or "(unchanged)")
    table.add_row("Timezone", wizard.selected_timezone or "(unchanged)")
    return Group(table, Text(""), Text("Press Enter to apply.", style="dim"))


def _packages(wizard: OnboardWizard) -> RenderableType:
    selection = wizard.selection
    rows: List[RenderableType] = []
    for c, cat in enumerate(selection.categories):
        if selection.is_category_fully_selected(c):
            box = "[x]"
        elif selection.is_category_partially_selected(c):
            box = "[~]"
        else:
            box = "[ ]"
        on_header = selection.category_cursor == c and selection.package_cursor is None
        rows.append(Text(f"{box} {cat.name}", style="bold reverse" if on_header else "bold"))
        for p, pkg in enumerate(cat.packages):
            mark = "[x]" if selection.selected[c][p] else "[ ]"
            suffix = " (required)" if pkg.required else ""
            on_row = selection.category_cursor == c and selection.package_cursor == p
            rows.append(Text(f"    {mark} {pkg.title}{suffix}", style="reverse" if on_row else ""))
            if pkg.description:
                rows.append(Text(f"        {pkg.description}", style="dim"))
    if wizard.sudo_password_needed:
        rows.append(Text(""))
        in_field = wizard.content_focus is ContentFocus.INPUT_FIELD
        rows.append(_field("Sudo password", wizard.sudo_password, in_field,
                           in_field and wizard.mode is EditMode.INSERT))
    return Group(*rows)


def _tasks(wizard: OnboardWizard) -> RenderableType:
    rows: List[RenderableType] = []
    for task in wizard.tasks:
        if task.state is TaskState.RUNNING:
            mark, style = wizard.spinner, "yellow"
        else:
            mark, style = TASK_MARKS[task.state]
        line = Text(f"{mark} ", style=style)
        line.append(task.name)
        rows.append(line)
        if task.progress is not None and task.state is TaskState.RUNNING:
            rows.append(ProgressBar(total=100, completed=task.progress, width=40))
        if task.output and task.state is TaskState.FAILED:
            rows.append(Text(f"    {task.output}", style="red"))
    return Group(*rows)


def _content(wizard: OnboardWizard) -> Panel:
    item = wizard.current_item()
    step = item.id if item else None
    border = "cyan" if wizard.panel_focus is PanelFocus.CONTENT else "white"
    title = step.title if step else ""

    tasks = wizard.tasks_for(step)
    if wizard.current_is_locked():
        body: RenderableType = Text("This step is locked. Complete previous steps first.", style="dim")
    elif tasks and (wizard.tasks_running() or step is StepId.REBOOT):
        body = _tasks(wizard)
    elif tasks:
        # Finished with failures: the step's own content stays editable for a retry
        body = Group(_step_body(wizard, step), Text(""), _tasks(wizard))
    else:
        body = _step_body(wizard, step)
    return Panel(body, title=title, border_style=border)


def _step_body(wizard: OnboardWizard, step: Optional[StepId]) -> RenderableType:
    if step is StepId.USER:
        body: RenderableType = _user_form(wizard)
    elif step is StepId.LOCALE:
        body = _picker(wizard, "Locale")
    elif step is StepId.KEYBOARD:
        body = _picker(wizard, "Keyboard")
    elif step is StepId.PREFERENCES:
        body = _picker(wizard, "Timezone")
    elif step is StepId.NETWORK:
        body = _network(wizard)
    elif step is StepId.REVIEW:
        body = _review(wizard)
    elif step is StepId.UPDATE:
        body = _packages(wizard)
    elif step is StepId.REBOOT:
        body = Text("Setup is ready. Press Enter to finish and reboot.")
    else:
        body = Text("")
    return body


def _welcome(wizard: OnboardWizard) -> Panel:
    general = wizard.config.general
    lines = [
        Text(general.title, style="bold", justify="center"),
        Text(general.subtitle, justify="center"),
        Text(""),
        Text("Press Enter to begin", style="dim", justify="center"),
    ]
    if wizard.is_dryrun:
        lines.append(Text("(dry run: no changes will be made)", style="yellow", justify="center"))
    return Panel(Group(*lines), border_style="cyan")


def _help() -> Panel:
    table = Table(show_header=False, box=None, padding=(0, 2))
    for key, desc in HELP_LINES:
        table.add_row(Text(key, style="bold cyan"), desc)
    return Panel(table, title="Help", subtitle="Esc to close")


def _confirm(wizard: OnboardWizard) -> Panel:
    return Panel(
        Text(f"Really {wizard.confirm_action.value}? [y/n]", justify="center"),
        title="Confirm",
        border_style="red",
    )


def status_bar(wizard: OnboardWizard) -> Table:
    hints = wizard.status_hints()
    left = Text(f" {wizard.mode.display_name} ", style=MODE_STYLES[wizard.mode])
    if wizard.mode is EditMode.COMMAND:
        left.append(f" :{wizard.command_buffer.content}")
    elif wizard.message is not None:
        style = "bold red" if wizard.message.is_error else "green"
        left.append(f" {wizard.message.text}", style=style)
    else:
        left.append(f" {hints.left}", style="dim")

    bar = Table.grid(expand=True)
    bar.add_column()
    bar.add_column(justify="right")
    bar.add_row(left, Text(hints.right, style="dim"))
    return bar


def render_wizard(wizard: OnboardWizard) -> RenderableType:
    """Build the whole wizard screen."""
    if wizard.confirm_action is not None:
        body: RenderableType = _confirm(wizard)
    elif wizard.show_help:
        body = _help()
    elif wizard.panel_focus is PanelFocus.WELCOME:
        body = _welcome(wizard)
    else:
        body = Table.grid(expand=True)
        body.add_column(width=20)
        body.add_column(ratio=1)
        body.add_row(_sidebar(wizard), _content(wizard))
    return Group(body, status_bar(wizard))
