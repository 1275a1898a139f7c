"""
First-boot setup wizard controller.

Guides a new machine through account creation, locale, keyboard,
network and timezone selection, applies the configuration, optionally
installs packages, and hands off to the login screen.

The controller is the only writer of wizard state. Long-running work is
done by a TaskRunner (real runs) or advanced by a SimulationClock
(dry runs); both report back through handle_execution_message().
"""

from __future__ import annotations

import logging
import shlex
from enum import Enum, auto
from typing import List, Optional

from common.exceptions import VimgreetError
from modal import EditAction, EditMode, InputBuffer, KeyPress, apply_edit_key

from .config import OnboardConfig
from .runner import Job, TaskRunner
from .selection import PackageSelection
from .simulation import SimulationCallback, SimulationClock
from .status_bar import StatusHints
from .steps import (
    ExecutionMessage,
    MenuItem,
    NetworkChecked,
    ReviewComplete,
    StepComplete,
    StepId,
    StepProgress,
    StepResult,
    TaskFailed,
    TaskStarted,
    TaskState,
    TaskStatus,
    TaskSucceeded,
    UpdateComplete,
    UserCreated,
    build_menu_items,
)

logger = logging.getLogger(__name__)

SPINNER_FRAMES = ["|", "/", "-", "\\"]
MAX_USERNAME_LENGTH = 32
USER_FORM_FIELDS = 3

LOCKED_MESSAGE = "This step is locked. Complete previous steps first."
BUSY_MESSAGE = "Please wait for the current operation to finish"


class PanelFocus(Enum):
    WELCOME = auto()
    SIDEBAR = auto()
    CONTENT = auto()


class ContentFocus(Enum):
    PICKER = auto()
    INPUT_FIELD = auto()
    NONE = auto()


class ConfirmAction(Enum):
    REBOOT = "reboot"
    POWEROFF = "power off"
    CANCEL = "exit setup"


class WizardAction(Enum):
    """Side effects the front-end carries out for the wizard."""
    REBOOT = auto()
    POWEROFF = auto()
    EXECUTE_STEP = auto()
    EXECUTE_REVIEW = auto()
    EXECUTE_UPDATE = auto()
    EXIT_TO_LOGIN = auto()
    TRANSITION_TO_LOGIN = auto()
    LAUNCH_NETWORK = auto()


class StatusMessage:
    __slots__ = ("text", "is_error")

    def __init__(self, text: str, is_error: bool = False):
        self.text = text
        self.is_error = is_error


def validate_username(username: str) -> Optional[str]:
    if not username:
        return "Username is required"
    if not all(c.isascii() and (c.isalnum() or c in "_-") for c in username):
        return "Username can only contain letters, numbers, underscore, and dash"
    if len(username) > MAX_USERNAME_LENGTH:
        return f"Username must be {MAX_USERNAME_LENGTH} characters or less"
    return None


class OnboardWizard:
    """
    State machine for the setup wizard.

    Args:
        config: Onboarding configuration
        service: LiveService or DryrunService
        runner: Background runner (a fresh one by default)
    """

    def __init__(self, config: OnboardConfig, service, runner: Optional[TaskRunner] = None):
        self.config = config
        self.service = service
        self.runner = runner or TaskRunner()
        self.simulation = SimulationClock()

        self.menu_items: List[MenuItem] = build_menu_items(config)
        self.progress = StepProgress(self.menu_items)
        self.selected_step = 0

        self.mode = EditMode.NORMAL
        self.panel_focus = PanelFocus.WELCOME
        self.content_focus = ContentFocus.NONE
        self.field_index = 0
        self.command_buffer = InputBuffer()

        self.picker_items: List[str] = []
        self.picker_selection = 0
        self.picker_filter = InputBuffer()

        self.username = InputBuffer()
        self.password = InputBuffer.masked()
        self.password_confirm = InputBuffer.masked()
        self.sudo_password = InputBuffer.masked()
        self.sudo_password_needed = False
        self.sudo_password_entered = False

        self.selected_locale: Optional[str] = None
        self.selected_keyboard: Optional[str] = None
        self.selected_timezone: Optional[str] = None

        self.selection = PackageSelection(config.updates)

        self.tasks: List[TaskStatus] = []
        self.tasks_step: Optional[StepId] = None
        self.current_task: Optional[int] = None
        self.is_executing = False
        self.created_username: Optional[str] = None

        self.message: Optional[StatusMessage] = None
        self.confirm_action: Optional[ConfirmAction] = None
        self.show_help = False
        self.should_exit = False
        self.setup_started = False
        self.setup_complete = False

        self.spinner_frame = 0
        self.network_connected = self.service.check_network()
        self._network_recheck = False
        self._pending_dd = False

        logger.info(
            f"Wizard ready: {len(self.menu_items)} steps, "
            f"dryrun={self.is_dryrun}, network={self.network_connected}"
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_dryrun(self) -> bool:
        return self.config.general.dryrun

    @property
    def step_results(self) -> List[StepResult]:
        return self.progress.results

    @property
    def review_completed(self) -> bool:
        return self.progress.result(StepId.REVIEW) is StepResult.COMPLETED

    @property
    def update_completed(self) -> bool:
        result = self.progress.result(StepId.UPDATE)
        return result is not None and result.is_done

    @property
    def spinner(self) -> str:
        return SPINNER_FRAMES[self.spinner_frame]

    def current_item(self) -> Optional[MenuItem]:
        if 0 <= self.selected_step < len(self.menu_items):
            return self.menu_items[self.selected_step]
        return None

    def current_step_id(self) -> Optional[StepId]:
        item = self.current_item()
        return item.id if item else None

    def current_is_locked(self) -> bool:
        return self.progress.is_locked(self.selected_step)

    def set_error(self, text: str) -> None:
        logger.warning(f"Wizard error: {text}")
        self.message = StatusMessage(text, is_error=True)

    def set_info(self, text: str) -> None:
        self.message = StatusMessage(text, is_error=False)

    def wipe(self) -> None:
        """Zero every secret buffer."""
        for buffer in (self.password, self.password_confirm, self.sudo_password):
            buffer.wipe()

    def field_count(self) -> int:
        step = self.current_step_id()
        if step is StepId.USER:
            return USER_FORM_FIELDS
        if step is StepId.UPDATE and self.sudo_password_needed:
            return 1
        return 0

    def current_input_buffer(self) -> Optional[InputBuffer]:
        if self.content_focus is ContentFocus.PICKER:
            return self.picker_filter
        if self.content_focus is not ContentFocus.INPUT_FIELD:
            return None
        step = self.current_step_id()
        if step is StepId.USER:
            return (self.username, self.password, self.password_confirm)[self.field_index]
        if step is StepId.UPDATE:
            return self.sudo_password
        return None

    def filtered_picker_items(self) -> List[str]:
        needle = self.picker_filter.content.lower()
        if not needle:
            return list(self.picker_items)
        return [item for item in self.picker_items if needle in item.lower()]

    def _set_tasks(self, step: Optional[StepId], tasks: List[TaskStatus]) -> None:
        self.tasks = tasks
        self.tasks_step = step if tasks else None

    def tasks_for(self, step: Optional[StepId]) -> List[TaskStatus]:
        """Task list owned by a step; other steps see none."""
        if step is not None and step is self.tasks_step:
            return self.tasks
        return []

    def tasks_running(self) -> bool:
        return self.is_executing or not all(task.is_finished for task in self.tasks)

    # ------------------------------------------------------------------
    # Key handling
    # ------------------------------------------------------------------

    def handle_key(self, key: KeyPress) -> Optional[WizardAction]:
        """
        Route one key press.

        Returns:
            An action the caller must perform, or None
        """
        if self.message is not None and not self.is_executing:
            self.message = None

        if self.confirm_action is not None:
            return self._handle_confirm(key)

        if self.show_help:
            if key.is_named("escape", "f1") or key.is_char("q", "?"):
                self.show_help = False
            return None

        if self.is_executing:
            self._handle_while_executing(key)
            return None

        if self.mode is EditMode.NORMAL:
            return self._handle_normal(key)
        if self.mode is EditMode.INSERT:
            return self._handle_insert(key)
        return self._handle_command(key)

    def _handle_confirm(self, key: KeyPress) -> Optional[WizardAction]:
        if key.is_char("y", "Y") or key.is_named("enter"):
            action = self.confirm_action
            self.confirm_action = None
            if action is ConfirmAction.CANCEL:
                logger.info("Setup cancelled by user")
                self.should_exit = True
                return None
            if self.is_dryrun and self.setup_complete:
                return WizardAction.TRANSITION_TO_LOGIN
            return WizardAction.REBOOT if action is ConfirmAction.REBOOT else WizardAction.POWEROFF
        if key.is_char("n", "N") or key.is_named("escape"):
            self.confirm_action = None
        return None

    def _handle_while_executing(self, key: KeyPress) -> None:
        # Work keeps running; only moving around is allowed
        if self.panel_focus is PanelFocus.SIDEBAR:
            if key.is_char("j") or key.is_named("down"):
                self.navigate_down()
            elif key.is_char("k") or key.is_named("up"):
                self.navigate_up()
        if key.is_ctrl("h"):
            self.focus_sidebar()
        elif key.is_ctrl("l"):
            self.focus_content()
        elif key.is_char("?") or key.is_named("f1"):
            self.show_help = True

    def _enter_insert(self) -> None:
        self.mode = self.mode.transition(EditAction.ENTER_INSERT)

    def _to_normal(self) -> None:
        self.mode = self.mode.transition(EditAction.ESCAPE)

    def _handle_normal(self, key: KeyPress) -> Optional[WizardAction]:
        in_content = self.panel_focus is PanelFocus.CONTENT
        step = self.current_step_id()

        if key.is_char("d") and in_content and self.content_focus is ContentFocus.INPUT_FIELD:
            if self._pending_dd:
                self.current_input_buffer().clear()
                self._pending_dd = False
            else:
                self._pending_dd = True
            return None
        self._pending_dd = False

        if key.is_ctrl("h"):
            self.focus_sidebar()
        elif key.is_ctrl("l"):
            self.focus_content()
        elif key.is_char(":"):
            self.mode = self.mode.transition(EditAction.ENTER_COMMAND)
            self.command_buffer.clear()
        elif key.is_char("j") or key.is_named("down", "tab"):
            self.navigate_down()
        elif key.is_char("k") or key.is_named("up", "backtab"):
            self.navigate_up()
        elif key.is_char("i", "a"):
            if in_content and self.content_focus in (ContentFocus.INPUT_FIELD, ContentFocus.PICKER):
                self._enter_insert()
                if key.char == "a" and self.current_input_buffer() is not None:
                    self.current_input_buffer().move_right()
        elif key.is_named("enter"):
            return self.handle_enter()
        elif key.is_char("l") or key.is_named("right"):
            if self.panel_focus is not PanelFocus.WELCOME:
                return self.handle_enter()
        elif key.is_char("h") or key.is_named("left", "escape"):
            if in_content:
                self.focus_sidebar()
        elif key.is_char("?") or key.is_named("f1"):
            self.show_help = True
        elif key.is_named("f12"):
            self.confirm_action = ConfirmAction.POWEROFF
        elif key.char is not None and key.char.isdigit() and self.panel_focus is PanelFocus.SIDEBAR:
            number = int(key.char)
            if 0 < number <= len(self.menu_items):
                self.selected_step = number - 1
                self.load_step_content()
        elif key.is_char(" "):
            if in_content and step is StepId.UPDATE:
                if not self.selection.toggle_at_cursor():
                    self.set_info("Required packages cannot be deselected")
                self.sudo_password_needed = self.selection.commands_need_sudo()
        elif key.char is not None and in_content and self.content_focus is ContentFocus.PICKER:
            self._enter_insert()
            self.picker_filter.insert(key.char)
            self.picker_selection = 0
        return None

    def _handle_insert(self, key: KeyPress) -> Optional[WizardAction]:
        if key.is_named("escape"):
            self._to_normal()
            return None

        if key.is_ctrl("h"):
            self._to_normal()
            self.focus_sidebar()
            return None

        step = self.current_step_id()

        if key.is_named("enter"):
            if self.content_focus is ContentFocus.INPUT_FIELD:
                if step is StepId.USER:
                    if self.field_index < USER_FORM_FIELDS - 1:
                        self.field_index += 1
                        return None
                    self._to_normal()
                    return WizardAction.EXECUTE_STEP
                if step is StepId.UPDATE:
                    if not self.sudo_password.is_empty():
                        self.sudo_password_entered = True
                        self._to_normal()
                        return WizardAction.EXECUTE_UPDATE
                    return None
                self._to_normal()
            elif self.content_focus is ContentFocus.PICKER:
                self._to_normal()
                self.select_picker_item()
            else:
                self._to_normal()
            return None

        if key.is_named("tab"):
            self._next_field()
            return None
        if key.is_named("backtab"):
            self._prev_field()
            return None

        if self.content_focus is ContentFocus.PICKER:
            if apply_edit_key(self.picker_filter, key):
                if key.char is not None or key.is_named("backspace", "delete") or key.ctrl:
                    self.picker_selection = 0
            return None

        buffer = self.current_input_buffer()
        if buffer is not None:
            apply_edit_key(buffer, key)
            if buffer is self.sudo_password:
                self.sudo_password_entered = False
        return None

    def _handle_command(self, key: KeyPress) -> Optional[WizardAction]:
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
    # Focus and navigation
    # ------------------------------------------------------------------

    def _can_move_focus(self) -> bool:
        return self.setup_started and not self.setup_complete

    def focus_sidebar(self) -> None:
        if not self._can_move_focus():
            return
        self.panel_focus = PanelFocus.SIDEBAR
        self.mode = EditMode.NORMAL

    def focus_content(self) -> None:
        if not self._can_move_focus():
            return
        item = self.current_item()
        if item is None:
            return
        self.panel_focus = PanelFocus.CONTENT
        self.field_index = 0
        if item.has_picker:
            self.content_focus = ContentFocus.PICKER
            if not self.is_executing:
                self.mode = EditMode.INSERT
        elif self.field_count() > 0:
            self.content_focus = ContentFocus.INPUT_FIELD
        else:
            self.content_focus = ContentFocus.NONE

    def _next_field(self) -> None:
        count = self.field_count()
        if count:
            self.field_index = min(self.field_index + 1, count - 1)

    def _prev_field(self) -> None:
        self.field_index = max(self.field_index - 1, 0)

    def navigate_down(self) -> None:
        if self.panel_focus is PanelFocus.SIDEBAR:
            if self.selected_step < len(self.menu_items) - 1:
                self.selected_step += 1
                self.load_step_content()
        elif self.panel_focus is PanelFocus.CONTENT:
            if self._on_package_list():
                self.selection.move_down()
            elif self.content_focus is ContentFocus.PICKER:
                last = len(self.filtered_picker_items()) - 1
                self.picker_selection = max(0, min(self.picker_selection + 1, last))
            elif self.content_focus is ContentFocus.INPUT_FIELD:
                self._next_field()

    def navigate_up(self) -> None:
        if self.panel_focus is PanelFocus.SIDEBAR:
            if self.selected_step > 0:
                self.selected_step -= 1
                self.load_step_content()
        elif self.panel_focus is PanelFocus.CONTENT:
            if self._on_package_list():
                self.selection.move_up()
            elif self.content_focus is ContentFocus.PICKER:
                self.picker_selection = max(self.picker_selection - 1, 0)
            elif self.content_focus is ContentFocus.INPUT_FIELD:
                self._prev_field()

    def _on_package_list(self) -> bool:
        return (
            self.current_step_id() is StepId.UPDATE
            and self.content_focus is not ContentFocus.INPUT_FIELD
            and not self.is_executing
            and self.config.has_updates
        )

    def handle_enter(self) -> Optional[WizardAction]:
        if self.panel_focus is PanelFocus.WELCOME:
            self.start_setup()
            return None

        if self.current_is_locked():
            self.set_error(LOCKED_MESSAGE)
            return None

        if self.panel_focus is PanelFocus.SIDEBAR:
            self.focus_content()
            if self.content_focus is ContentFocus.INPUT_FIELD:
                self._enter_insert()
            return None

        step = self.current_step_id()

        if step is StepId.UPDATE:
            if self.is_dryrun or not self.sudo_password_needed or self.sudo_password_entered:
                return WizardAction.EXECUTE_UPDATE
            self.content_focus = ContentFocus.INPUT_FIELD
            self.field_index = 0
            self._enter_insert()
            return None

        if self.content_focus is ContentFocus.PICKER:
            self.select_picker_item()
            return None

        if self.content_focus is ContentFocus.INPUT_FIELD:
            if step is StepId.USER:
                return WizardAction.EXECUTE_STEP
            self._enter_insert()
            return None

        if step is StepId.NETWORK:
            if self.network_connected:
                self.progress.mark(StepId.NETWORK, StepResult.COMPLETED)
                self.advance_from(StepId.NETWORK)
                return None
            return WizardAction.LAUNCH_NETWORK
        if step is StepId.REVIEW:
            return WizardAction.EXECUTE_REVIEW
        if step is StepId.REBOOT:
            return WizardAction.EXIT_TO_LOGIN
        return None

    # ------------------------------------------------------------------
    # Step lifecycle
    # ------------------------------------------------------------------

    def start_setup(self) -> None:
        if self.setup_started:
            return
        logger.info("Setup started")
        self.setup_started = True
        self.selected_step = 0
        self.load_step_content()

        if (
            self.network_connected
            and self.config.network.skip_if_connected
            and self.progress.has(StepId.NETWORK)
        ):
            self.progress.mark(StepId.NETWORK, StepResult.COMPLETED)

        self.focus_content()
        if self.content_focus is ContentFocus.INPUT_FIELD:
            self._enter_insert()

    def load_step_content(self) -> None:
        """Load what the newly selected step shows."""
        step = self.current_step_id()
        self.field_index = 0

        if step in (StepId.LOCALE, StepId.KEYBOARD, StepId.PREFERENCES):
            if step is StepId.LOCALE:
                self.picker_items = self.service.list_locales()
                current = self.selected_locale or self.config.locale.default_locale
            elif step is StepId.KEYBOARD:
                self.picker_items = self.service.list_keymaps()
                current = self.selected_keyboard or self.config.keyboard.default_layout
            else:
                self.picker_items = self.service.list_timezones()
                current = self.selected_timezone or self.config.preferences.default_timezone
            self.picker_filter.clear()
            self.picker_selection = (
                self.picker_items.index(current) if current in self.picker_items else 0
            )
        elif step is StepId.UPDATE:
            self.sudo_password_needed = self.selection.commands_need_sudo()
            self.sudo_password.clear()
            self.sudo_password_entered = False

    def select_step(self, index: int) -> None:
        self.selected_step = index
        self.load_step_content()
        self.focus_content()

    def advance_from(self, step: StepId) -> None:
        """Move to the step after the given one, if there is one."""
        index = self.progress.index_of(step)
        if index is None or index + 1 >= len(self.menu_items):
            return
        self.select_step(index + 1)

    def advance_to_next_step(self) -> None:
        if self.selected_step + 1 < len(self.menu_items):
            self.select_step(self.selected_step + 1)

    def select_picker_item(self) -> None:
        items = self.filtered_picker_items()
        if not items:
            return
        value = items[min(self.picker_selection, len(items) - 1)]
        step = self.current_step_id()

        if step is StepId.LOCALE:
            self.selected_locale = value
            label = "Locale"
        elif step is StepId.KEYBOARD:
            self.selected_keyboard = value
            label = "Keyboard"
        elif step is StepId.PREFERENCES:
            self.selected_timezone = value
            label = "Timezone"
        else:
            return

        self.progress.mark(step, StepResult.COMPLETED)
        self.set_info(f"{label} selected: {value}")
        self.advance_from(step)

    def network_program_finished(self, error: Optional[str] = None) -> None:
        """Called after the external network program returns."""
        if error:
            self.set_error(error)
        self._network_recheck = True
        self.runner.check_network(self.service.check_network)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def execute_command(self, text: str) -> Optional[WizardAction]:
        parts = text.strip().split()
        if not parts:
            return None
        command = parts[0].lower()

        if command in ("start", "run"):
            self.start_setup()
        elif command in ("next", "n"):
            if self.setup_started:
                self.advance_to_next_step()
        elif command in ("skip", "s"):
            self._skip_current()
        elif command in ("cancel", "q", "quit"):
            self.confirm_action = ConfirmAction.CANCEL
        elif command == "reboot":
            self.confirm_action = ConfirmAction.REBOOT
        elif command in ("poweroff", "shutdown"):
            self.confirm_action = ConfirmAction.POWEROFF
        elif command in ("help", "h"):
            self.show_help = True
        elif command in ("submit", "create", "install", "update"):
            if self.current_is_locked():
                self.set_error(LOCKED_MESSAGE)
                return None
            step = self.current_step_id()
            if step is StepId.REVIEW:
                return WizardAction.EXECUTE_REVIEW
            if step is StepId.UPDATE:
                return WizardAction.EXECUTE_UPDATE
            return WizardAction.EXECUTE_STEP
        elif command in ("finish", "done", "login"):
            if not self.review_completed:
                self.set_error("Complete the Review step first")
            elif self.progress.result(StepId.REBOOT) is StepResult.LOCKED:
                self.set_error(LOCKED_MESSAGE)
            else:
                return WizardAction.EXIT_TO_LOGIN
        else:
            self.set_error(f"Unknown command: {command}")
        return None

    def _skip_current(self) -> None:
        item = self.current_item()
        if not self.setup_started or item is None:
            return
        if item.required:
            self.set_error("This step is required")
            return
        if self.current_is_locked():
            self.set_error(LOCKED_MESSAGE)
            return
        self.progress.mark(item.id, StepResult.SKIPPED)
        logger.info(f"Skipped step {item.id.name}")
        self.advance_from(item.id)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def validate_user_form(self) -> bool:
        error = validate_username(self.username.content)
        if error is None:
            password = self.password.content
            minimum = self.config.user.min_password_length
            if not password:
                error = "Password is required"
            elif len(password) < minimum:
                error = f"Password must be at least {minimum} characters"
            elif password != self.password_confirm.content:
                error = "Passwords do not match"
        if error:
            self.set_error(error)
            return False
        return True

    def _refuse_if_busy(self) -> bool:
        if self.is_executing or self.runner.busy:
            self.set_error(BUSY_MESSAGE)
            return True
        return False

    def _create_user_job(self, username: str, password: str) -> Job:
        user = self.config.user
        return Job(
            f"Creating user '{username}'",
            lambda: self.service.create_user(username, password, user.shell, user.groups),
            creates_user=username,
        )

    def start_step_execution(self) -> None:
        """Create the account from the User form."""
        if self.current_step_id() is not StepId.USER or self._refuse_if_busy():
            return
        if not self.validate_user_form():
            return

        username = self.username.content
        if self.created_username == username:
            self.progress.mark(StepId.USER, StepResult.COMPLETED)
            self.advance_from(StepId.USER)
            return

        # The form keeps the password: Review re-validates it and recreates
        # the account if the name changed, then clears it on success
        job = self._create_user_job(username, self.password.content)
        self._set_tasks(StepId.USER, [TaskStatus(job.name, TaskState.RUNNING)])
        self.current_task = 0

        if self.is_dryrun:
            self._set_tasks(None, [])
            self.current_task = None
            self.created_username = username
            self.progress.mark(StepId.USER, StepResult.COMPLETED)
            self.advance_from(StepId.USER)
            return

        self.is_executing = True
        self.runner.run_user_step(job)

    def start_review_execution(self) -> None:
        """Apply the account, locale, keymap and timezone in order."""
        if self._refuse_if_busy() or not self.validate_user_form():
            return

        username = self.username.content
        if self.created_username == username:
            jobs = [Job(f"Creating user '{username}'", lambda: "User already created")]
        else:
            # Copied, not taken: a failed Review is retried from the same form
            jobs = [self._create_user_job(username, self.password.content)]

        if self.selected_locale:
            locale = self.selected_locale
            jobs.append(Job(f"Setting locale to {locale}", lambda: self.service.set_locale(locale)))
        if self.selected_keyboard:
            keymap = self.selected_keyboard
            jobs.append(Job(f"Setting keyboard to {keymap}", lambda: self.service.set_keymap(keymap)))
        if self.selected_timezone:
            timezone = self.selected_timezone
            jobs.append(Job(f"Setting timezone to {timezone}", lambda: self.service.set_timezone(timezone)))

        self.is_executing = True
        self.current_task = None

        if self.is_dryrun:
            self._set_tasks(StepId.REVIEW, [TaskStatus(job.name, TaskState.PENDING, progress=0) for job in jobs])
            self.created_username = username
            self.simulation.start(SimulationCallback.COMPLETE_REVIEW)
            return

        self._set_tasks(StepId.REVIEW, [TaskStatus(job.name) for job in jobs])
        self.runner.run_review(jobs)

    def start_update_execution(self) -> None:
        """Run the selected packages' commands as the new user."""
        if self._refuse_if_busy():
            return
        if self.progress.result(StepId.UPDATE) is StepResult.LOCKED:
            self.set_error(LOCKED_MESSAGE)
            return

        commands = self.selection.selected_commands()
        if not commands:
            self.progress.mark(StepId.UPDATE, StepResult.SKIPPED)
            self.set_info("No packages selected. Continuing to finish.")
            self.advance_from(StepId.UPDATE)
            return

        names = [cmd.name or shlex.join(cmd.command) for cmd in commands]

        if self.is_dryrun:
            self._set_tasks(StepId.UPDATE, [TaskStatus(name, TaskState.PENDING, progress=0) for name in names])
            self.current_task = None
            self.is_executing = True
            self.simulation.start(SimulationCallback.COMPLETE_UPDATE)
            return

        if self.created_username is None:
            self.set_error("User must be created before running commands")
            return

        needs_sudo = any(cmd.sudo for cmd in commands)
        if needs_sudo and (not self.sudo_password_entered or self.sudo_password.is_empty()):
            self.set_error("Enter your password for sudo commands")
            self.panel_focus = PanelFocus.CONTENT
            self.content_focus = ContentFocus.INPUT_FIELD
            self.field_index = 0
            self.mode = EditMode.INSERT
            return

        # The worker gets a copy; the buffer is wiped before it starts
        password = self.sudo_password.take() if needs_sudo else ""
        self.sudo_password_entered = False
        username = self.created_username

        jobs = []
        for name, cmd in zip(names, commands):
            if cmd.sudo:
                run = lambda c=cmd: self.service.run_command_sudo(username, c.command, password)
            else:
                run = lambda c=cmd: self.service.run_command(username, c.command)
            jobs.append(Job(name, run))

        self._set_tasks(StepId.UPDATE, [TaskStatus(name) for name in names])
        self.current_task = None
        self.is_executing = True
        self.runner.run_update(jobs)

    def finish_setup(self) -> None:
        """Remove auto-login and run the configured completion action."""
        task = TaskStatus("Finishing setup", TaskState.RUNNING)
        self._set_tasks(StepId.REBOOT, [task])

        if self.config.completion.remove_initial_session:
            try:
                self.service.remove_initial_session()
            except VimgreetError as e:
                logger.warning(f"Could not remove initial session: {e}")
                task.output = e.message

        task.state = TaskState.SUCCESS
        self.setup_complete = True
        logger.info("Setup complete")

        if self.is_dryrun:
            self.confirm_action = ConfirmAction.REBOOT
            return

        action = self.config.completion.action
        if action == "reboot":
            self.confirm_action = ConfirmAction.REBOOT
        elif action == "poweroff":
            self.confirm_action = ConfirmAction.POWEROFF
        else:
            self.should_exit = True

    def perform(self, action: Optional[WizardAction], power) -> Optional[WizardAction]:
        """
        Carry out an action returned by handle_key.

        Returns:
            LAUNCH_NETWORK or TRANSITION_TO_LOGIN, which need the front-end
        """
        if action is None:
            return None
        if action is WizardAction.EXECUTE_STEP:
            self.start_step_execution()
        elif action is WizardAction.EXECUTE_REVIEW:
            self.start_review_execution()
        elif action is WizardAction.EXECUTE_UPDATE:
            self.start_update_execution()
        elif action is WizardAction.EXIT_TO_LOGIN:
            self.finish_setup()
        elif action is WizardAction.REBOOT:
            try:
                power.reboot()
            except VimgreetError as e:
                self.set_error(e.message)
        elif action is WizardAction.POWEROFF:
            try:
                power.poweroff()
            except VimgreetError as e:
                self.set_error(e.message)
        else:
            return action
        return None

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def poll_messages(self) -> int:
        messages = self.runner.drain()
        for message in messages:
            self.handle_execution_message(message)
        return len(messages)

    def handle_execution_message(self, message: ExecutionMessage) -> None:
        if isinstance(message, TaskStarted):
            self._task(message.index).state = TaskState.RUNNING
            self.current_task = message.index
        elif isinstance(message, TaskSucceeded):
            task = self._task(message.index)
            task.state = TaskState.SUCCESS
            task.output = message.output
        elif isinstance(message, TaskFailed):
            task = self._task(message.index)
            task.state = TaskState.FAILED
            task.output = message.error
            self.set_error(f"{task.name} failed: {message.error}")
        elif isinstance(message, UserCreated):
            if message.username is not None:
                self.created_username = message.username
        elif isinstance(message, StepComplete):
            self.is_executing = False
            self.current_task = None
            self.progress.mark(StepId.USER, message.result)
            if message.result is StepResult.COMPLETED:
                self._set_tasks(None, [])
                self.advance_from(StepId.USER)
        elif isinstance(message, ReviewComplete):
            self._complete_review(message.any_failed)
        elif isinstance(message, UpdateComplete):
            self._complete_update(message.any_failed)
        elif isinstance(message, NetworkChecked):
            self._network_checked(message.connected)

    def _task(self, index: int) -> TaskStatus:
        return self.tasks[index]

    def _failed_count(self) -> int:
        return sum(1 for task in self.tasks if task.state is TaskState.FAILED)

    def _complete_review(self, any_failed: bool) -> None:
        self.is_executing = False
        self.current_task = None
        if any_failed:
            self.progress.mark(StepId.REVIEW, StepResult.FAILED)
            self.set_error(f"{self._failed_count()} task(s) failed during configuration")
            return

        self.progress.mark(StepId.REVIEW, StepResult.COMPLETED)
        self._set_tasks(None, [])
        self.password.clear()
        self.password_confirm.clear()
        if self.progress.has(StepId.UPDATE):
            self.set_info("Configuration applied! Select packages to install.")
        else:
            self.set_info("Configuration applied!")
        self.advance_from(StepId.REVIEW)

    def _complete_update(self, any_failed: bool) -> None:
        self.is_executing = False
        self.current_task = None
        if any_failed:
            self.progress.mark(StepId.UPDATE, StepResult.FAILED)
            self.set_error(f"{self._failed_count()} task(s) failed during installation")
            return

        self.progress.mark(StepId.UPDATE, StepResult.COMPLETED)
        self._set_tasks(None, [])
        self.set_info("Installation complete! Reboot to finish setup.")
        self.advance_from(StepId.UPDATE)

    def _network_checked(self, connected: bool) -> None:
        self.network_connected = connected
        if not self._network_recheck:
            return
        self._network_recheck = False
        if connected:
            self.progress.mark(StepId.NETWORK, StepResult.COMPLETED)
            self.set_info("Network connected")
            self.advance_from(StepId.NETWORK)
        else:
            self.set_error("Still not connected to a network")

    def tick(self) -> None:
        """Periodic work: spinner, network probe, simulation, messages."""
        self.spinner_frame = (self.spinner_frame + 1) % len(SPINNER_FRAMES)
        if self.spinner_frame == 0:
            self.runner.check_network(self.service.check_network)

        callback = self.simulation.advance(self.tasks)
        if callback is SimulationCallback.COMPLETE_REVIEW:
            self._complete_review(any_failed=False)
        elif callback is SimulationCallback.COMPLETE_UPDATE:
            self._complete_update(any_failed=False)

        self.poll_messages()

    # ------------------------------------------------------------------
    # Status bar
    # ------------------------------------------------------------------

    def status_hints(self) -> StatusHints:
        if self.is_executing:
            return StatusHints.executing()
        if self.mode is EditMode.COMMAND:
            return StatusHints.command_mode()
        if self.panel_focus is PanelFocus.WELCOME:
            return StatusHints.welcome()
        if self.panel_focus is PanelFocus.SIDEBAR:
            return StatusHints.sidebar_normal()
        if self.current_is_locked():
            return StatusHints.locked_step()

        step = self.current_step_id()
        insert = self.mode is EditMode.INSERT
        if step is StepId.NETWORK:
            return StatusHints.network_step(self.network_connected)
        if step is StepId.REVIEW:
            return StatusHints.review_step()
        if step is StepId.UPDATE:
            return StatusHints.update_step(self.sudo_password_needed and not self.sudo_password_entered)
        if step is StepId.REBOOT:
            return StatusHints.reboot_step()
        if self.content_focus is ContentFocus.PICKER:
            return StatusHints.content_picker_insert() if insert else StatusHints.content_picker_normal()
        return StatusHints.content_form_insert() if insert else StatusHints.content_form_normal()
