"""
Tests for the onboarding wizard controller.
"""

import pytest
from unittest.mock import MagicMock

from onboarding.runner import TaskRunner
from onboarding.steps import NetworkChecked


class InlineRunner(TaskRunner):
    """Runs jobs on the calling thread so results are ready to poll."""

    def _spawn(self, name, target):
        target()

    def check_network(self, probe):
        self.post(NetworkChecked(probe()))
        return True


@pytest.fixture
def live_config():
    from onboarding.config import OnboardConfig

    return OnboardConfig()


@pytest.fixture
def live_wizard(live_config, mock_service):
    from onboarding.wizard import OnboardWizard

    return OnboardWizard(live_config, mock_service, runner=InlineRunner())


def fill_user_form(wizard, keys, username="alice", password="password1", confirm=None):
    """Type into the three user fields; returns the action from the final Enter."""
    keys.type(wizard, username)
    keys.press(wizard, "enter")
    keys.type(wizard, password)
    keys.press(wizard, "enter")
    keys.type(wizard, password if confirm is None else confirm)
    return keys.press(wizard, "enter")


def run_command(wizard, keys, text):
    keys.press(wizard, "escape", ":")
    keys.type(wizard, text)
    return keys.press(wizard, "enter")


@pytest.mark.unit
class TestWelcomeAndFocus:
    """Tests for starting setup and moving between panels."""

    def test_starts_on_welcome(self, dryrun_wizard):
        from onboarding.wizard import PanelFocus

        assert dryrun_wizard.panel_focus is PanelFocus.WELCOME
        assert not dryrun_wizard.setup_started
        assert dryrun_wizard.status_hints().right == "Enter: start setup"

    def test_enter_starts_setup_on_user_form(self, dryrun_wizard, keys):
        from modal import EditMode
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import ContentFocus, PanelFocus

        keys.press(dryrun_wizard, "enter")

        assert dryrun_wizard.setup_started
        assert dryrun_wizard.panel_focus is PanelFocus.CONTENT
        assert dryrun_wizard.content_focus is ContentFocus.INPUT_FIELD
        assert dryrun_wizard.mode is EditMode.INSERT
        assert dryrun_wizard.current_step_id() is StepId.USER
        assert dryrun_wizard.progress.result(StepId.NETWORK) is StepResult.COMPLETED

    def test_network_not_auto_completed_when_offline(self, live_wizard, mock_service, keys):
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import OnboardWizard

        mock_service.check_network.return_value = False
        wizard = OnboardWizard(live_wizard.config, mock_service, runner=InlineRunner())
        keys.press(wizard, "enter")

        assert wizard.progress.result(StepId.NETWORK) is StepResult.PENDING

    def test_start_command(self, dryrun_wizard, keys):
        keys.press(dryrun_wizard, ":")
        keys.type(dryrun_wizard, "start")
        keys.press(dryrun_wizard, "enter")

        assert dryrun_wizard.setup_started

    def test_focus_moves_ignored_before_start(self, dryrun_wizard, keys):
        from onboarding.wizard import PanelFocus

        keys.press(dryrun_wizard, "ctrl+h")
        assert dryrun_wizard.panel_focus is PanelFocus.WELCOME

    def test_sidebar_navigation(self, dryrun_wizard, keys):
        from onboarding.steps import StepId
        from onboarding.wizard import PanelFocus

        keys.press(dryrun_wizard, "enter", "ctrl+h")
        assert dryrun_wizard.panel_focus is PanelFocus.SIDEBAR

        keys.press(dryrun_wizard, "j", "j")
        assert dryrun_wizard.current_step_id() is StepId.KEYBOARD
        keys.press(dryrun_wizard, "k")
        assert dryrun_wizard.current_step_id() is StepId.LOCALE

        keys.press(dryrun_wizard, "5")
        assert dryrun_wizard.current_step_id() is StepId.PREFERENCES
        assert "UTC" in dryrun_wizard.picker_items

    def test_locked_step_rejected(self, dryrun_wizard, keys):
        from onboarding.steps import StepId
        from onboarding.wizard import LOCKED_MESSAGE, PanelFocus

        keys.press(dryrun_wizard, "enter", "ctrl+h", "7")
        assert dryrun_wizard.current_step_id() is StepId.REBOOT

        keys.press(dryrun_wizard, "enter")

        assert dryrun_wizard.panel_focus is PanelFocus.SIDEBAR
        assert dryrun_wizard.message.is_error
        assert dryrun_wizard.message.text == LOCKED_MESSAGE

    def test_help_toggle(self, dryrun_wizard, keys):
        keys.press(dryrun_wizard, "?")
        assert dryrun_wizard.show_help
        keys.press(dryrun_wizard, "escape")
        assert not dryrun_wizard.show_help


@pytest.mark.unit
class TestUserForm:
    """Tests for the account form and its validation."""

    @pytest.mark.parametrize("username,password,confirm,expected", [
        ("", "password1", "password1", "Username is required"),
        ("al ice", "password1", "password1",
         "Username can only contain letters, numbers, underscore, and dash"),
        ("a" * 33, "password1", "password1", "Username must be 32 characters or less"),
        ("alice", "", "", "Password is required"),
        ("alice", "short", "short", "Password must be at least 8 characters"),
        ("alice", "password1", "password2", "Passwords do not match"),
    ])
    def test_validation_messages(self, dryrun_wizard, username, password, confirm, expected):
        dryrun_wizard.username.set(username)
        dryrun_wizard.password.set(password)
        dryrun_wizard.password_confirm.set(confirm)

        assert dryrun_wizard.validate_user_form() is False
        assert dryrun_wizard.message.text == expected

    def test_valid_form(self, dryrun_wizard):
        dryrun_wizard.username.set("alice_01-x")
        dryrun_wizard.password.set("password1")
        dryrun_wizard.password_confirm.set("password1")

        assert dryrun_wizard.validate_user_form() is True

    def test_password_fields_masked(self, dryrun_wizard, keys):
        keys.press(dryrun_wizard, "enter")
        action = fill_user_form(dryrun_wizard, keys, password="hunter22", confirm="hunter2")
        dryrun_wizard.perform(action, MagicMock())

        assert dryrun_wizard.password.display("*") == "********"
        assert dryrun_wizard.message.text == "Passwords do not match"

    def test_enter_on_last_field_submits(self, dryrun_wizard, keys):
        from onboarding.wizard import WizardAction

        keys.press(dryrun_wizard, "enter")
        assert fill_user_form(dryrun_wizard, keys) is WizardAction.EXECUTE_STEP

    def test_dryrun_user_step_advances(self, dryrun_wizard, keys):
        from onboarding.steps import StepId, StepResult

        keys.press(dryrun_wizard, "enter")
        dryrun_wizard.perform(fill_user_form(dryrun_wizard, keys), MagicMock())

        assert dryrun_wizard.progress.result(StepId.USER) is StepResult.COMPLETED
        assert dryrun_wizard.created_username == "alice"
        assert dryrun_wizard.current_step_id() is StepId.LOCALE

    def test_dd_clears_field(self, dryrun_wizard, keys):
        keys.press(dryrun_wizard, "enter")
        keys.type(dryrun_wizard, "alice")
        keys.press(dryrun_wizard, "escape", "d", "d")

        assert dryrun_wizard.username.is_empty()

    def test_live_user_creation(self, live_wizard, mock_service, keys):
        from onboarding.steps import StepId, StepResult

        keys.press(live_wizard, "enter")
        live_wizard.perform(fill_user_form(live_wizard, keys), MagicMock())
        assert live_wizard.is_executing

        live_wizard.poll_messages()

        mock_service.create_user.assert_called_once_with("alice", "password1", "/bin/bash", ["wheel"])
        assert not live_wizard.is_executing
        assert live_wizard.created_username == "alice"
        assert live_wizard.progress.result(StepId.USER) is StepResult.COMPLETED

    def test_live_user_creation_failure(self, live_wizard, mock_service, keys):
        from common.exceptions import UserCreationError
        from onboarding.steps import StepId, StepResult

        mock_service.create_user.side_effect = UserCreationError("useradd failed with code 9: exists")
        keys.press(live_wizard, "enter")
        live_wizard.perform(fill_user_form(live_wizard, keys), MagicMock())
        live_wizard.poll_messages()

        assert live_wizard.created_username is None
        assert live_wizard.progress.result(StepId.USER) is StepResult.FAILED
        assert live_wizard.current_step_id() is StepId.USER
        assert "useradd failed" in live_wizard.message.text
        assert live_wizard.tasks[0].output == "useradd failed with code 9: exists"
        assert live_wizard.tasks_for(StepId.USER) == live_wizard.tasks

    def test_keys_ignored_while_executing(self, dryrun_wizard, keys):
        keys.press(dryrun_wizard, "enter")
        dryrun_wizard.is_executing = True
        keys.type(dryrun_wizard, "alice")

        assert dryrun_wizard.username.is_empty()


@pytest.mark.unit
class TestPickersAndCommands:
    """Tests for picker steps and the wizard command line."""

    def _at_locale(self, wizard, keys):
        keys.press(wizard, "enter")
        wizard.perform(fill_user_form(wizard, keys), MagicMock())

    def test_filter_and_select(self, dryrun_wizard, keys):
        from onboarding.steps import StepId, StepResult

        self._at_locale(dryrun_wizard, keys)
        keys.type(dryrun_wizard, "DE")
        assert dryrun_wizard.filtered_picker_items() == ["de_DE.UTF-8"]

        keys.press(dryrun_wizard, "enter")

        assert dryrun_wizard.selected_locale == "de_DE.UTF-8"
        assert dryrun_wizard.message.text == "Locale selected: de_DE.UTF-8"
        assert dryrun_wizard.progress.result(StepId.LOCALE) is StepResult.COMPLETED
        assert dryrun_wizard.current_step_id() is StepId.KEYBOARD

    def test_picker_preselects_default(self, dryrun_wizard, keys):
        self._at_locale(dryrun_wizard, keys)
        keys.press(dryrun_wizard, "enter")
        assert dryrun_wizard.selected_keyboard is None
        assert dryrun_wizard.picker_items[dryrun_wizard.picker_selection] == "us"

    def test_skip_optional_step(self, dryrun_wizard, keys):
        from onboarding.steps import StepId, StepResult

        self._at_locale(dryrun_wizard, keys)
        run_command(dryrun_wizard, keys, "skip")

        assert dryrun_wizard.progress.result(StepId.LOCALE) is StepResult.SKIPPED
        assert dryrun_wizard.current_step_id() is StepId.KEYBOARD

    def test_skip_required_step(self, dryrun_wizard, keys):
        keys.press(dryrun_wizard, "enter")
        run_command(dryrun_wizard, keys, "S")

        assert dryrun_wizard.message.text == "This step is required"

    def test_finish_requires_review(self, dryrun_wizard, keys):
        keys.press(dryrun_wizard, "enter")
        assert run_command(dryrun_wizard, keys, "finish") is None
        assert dryrun_wizard.message.text == "Complete the Review step first"

    def test_unknown_command(self, dryrun_wizard, keys):
        run_command(dryrun_wizard, keys, "frobnicate")
        assert dryrun_wizard.message.text == "Unknown command: frobnicate"

    def test_cancel_confirm_exits(self, dryrun_wizard, keys):
        from onboarding.wizard import ConfirmAction

        run_command(dryrun_wizard, keys, "quit")
        assert dryrun_wizard.confirm_action is ConfirmAction.CANCEL

        assert keys.press(dryrun_wizard, "y") is None
        assert dryrun_wizard.should_exit

    def test_poweroff_confirm(self, dryrun_wizard, keys):
        from onboarding.wizard import WizardAction

        run_command(dryrun_wizard, keys, "shutdown")
        assert keys.press(dryrun_wizard, "enter") is WizardAction.POWEROFF

    def test_submit_picks_step_action(self, dryrun_wizard, keys):
        from onboarding.wizard import WizardAction

        keys.press(dryrun_wizard, "enter")
        assert run_command(dryrun_wizard, keys, "create") is WizardAction.EXECUTE_STEP


@pytest.mark.unit
class TestReview:
    """Tests for applying the reviewed configuration."""

    def _user_created(self, wizard, keys):
        keys.press(wizard, "enter")
        wizard.perform(fill_user_form(wizard, keys), MagicMock())
        wizard.poll_messages()

    def test_review_skips_existing_user(self, live_wizard, mock_service, keys):
        from onboarding.steps import StepId, StepResult, TaskState

        self._user_created(live_wizard, keys)
        live_wizard.selected_locale = "de_DE.UTF-8"
        live_wizard.selected_timezone = "Europe/Berlin"

        live_wizard.start_review_execution()
        names = [t.name for t in live_wizard.tasks]
        live_wizard.poll_messages()

        assert names == [
            "Creating user 'alice'",
            "Setting locale to de_DE.UTF-8",
            "Setting timezone to Europe/Berlin",
        ]
        assert mock_service.create_user.call_count == 1
        mock_service.set_locale.assert_called_once_with("de_DE.UTF-8")
        mock_service.set_keymap.assert_not_called()
        assert live_wizard.progress.result(StepId.REVIEW) is StepResult.COMPLETED
        assert live_wizard.progress.result(StepId.REBOOT) is StepResult.PENDING
        assert live_wizard.password.is_empty()
        assert live_wizard.password_confirm.is_empty()

    def test_review_failure_keeps_reboot_locked(self, live_wizard, mock_service, keys):
        from common.exceptions import CommandFailedError
        from onboarding.steps import StepId, StepResult, TaskState

        self._user_created(live_wizard, keys)
        mock_service.set_locale.side_effect = CommandFailedError("localectl set-locale failed with code 1")
        live_wizard.selected_locale = "xx_XX"
        live_wizard.selected_keyboard = "de"

        live_wizard.start_review_execution()
        live_wizard.poll_messages()

        assert [t.state for t in live_wizard.tasks] == [
            TaskState.SUCCESS, TaskState.FAILED, TaskState.SUCCESS,
        ]
        mock_service.set_keymap.assert_called_once_with("de")
        assert live_wizard.progress.result(StepId.REVIEW) is StepResult.FAILED
        assert live_wizard.progress.result(StepId.REBOOT) is StepResult.LOCKED
        assert live_wizard.message.text == "1 task(s) failed during configuration"

    def test_refuses_while_executing(self, dryrun_wizard):
        dryrun_wizard.is_executing = True
        dryrun_wizard.start_review_execution()
        assert dryrun_wizard.message.is_error

    def test_refuses_while_runner_busy(self, live_wizard):
        from unittest.mock import PropertyMock, patch
        from onboarding.wizard import BUSY_MESSAGE

        with patch.object(TaskRunner, "busy", new_callable=PropertyMock, return_value=True):
            live_wizard.start_review_execution()

        assert live_wizard.message.text == BUSY_MESSAGE
        assert not live_wizard.tasks

    def test_failed_review_tasks_stay_on_review(self, live_wizard, mock_service, keys):
        from rich.console import Console
        from common.exceptions import CommandFailedError
        from onboarding.steps import StepId
        from onboarding.view import render_wizard

        self._user_created(live_wizard, keys)
        mock_service.set_locale.side_effect = CommandFailedError("localectl set-locale failed with code 1")
        live_wizard.selected_locale = "xx_XX"
        live_wizard.start_review_execution()
        live_wizard.poll_messages()

        assert live_wizard.tasks_for(StepId.REVIEW)
        live_wizard.select_step(live_wizard.progress.index_of(StepId.USER))
        assert live_wizard.tasks_for(StepId.USER) == []

        console = Console(record=True, width=120)
        console.print(render_wizard(live_wizard))
        screen = console.export_text()

        assert "Confirm password" in screen
        assert "Setting locale" not in screen


@pytest.mark.unit
class TestUpdateStep:
    """Tests for package installation."""

    @pytest.fixture
    def update_wizard(self, live_config, mock_service, sample_updates, keys):
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import OnboardWizard

        live_config.updates = sample_updates
        wizard = OnboardWizard(live_config, mock_service, runner=InlineRunner())
        keys.press(wizard, "enter")
        wizard.progress.mark(StepId.REVIEW, StepResult.COMPLETED)
        wizard.created_username = "alice"
        wizard.select_step(wizard.progress.index_of(StepId.UPDATE))
        return wizard

    def test_update_unlocked_by_review(self, update_wizard):
        from onboarding.steps import StepId, StepResult

        assert update_wizard.progress.result(StepId.UPDATE) is StepResult.PENDING
        assert update_wizard.progress.result(StepId.REBOOT) is StepResult.LOCKED

    def test_runs_selected_commands(self, update_wizard, mock_service):
        from onboarding.steps import StepId, StepResult

        update_wizard.start_update_execution()
        update_wizard.poll_messages()

        mock_service.run_command.assert_called_once_with("alice", ["flatpak", "install", "firefox"])
        mock_service.run_command_sudo.assert_not_called()
        assert update_wizard.progress.result(StepId.UPDATE) is StepResult.COMPLETED
        assert update_wizard.progress.result(StepId.REBOOT) is StepResult.PENDING
        assert update_wizard.current_step_id() is StepId.REBOOT

    def test_sudo_needs_password(self, update_wizard, mock_service):
        from modal import EditMode
        from onboarding.wizard import ContentFocus

        update_wizard.selection.toggle_category(1)
        update_wizard.start_update_execution()

        assert update_wizard.message.text == "Enter your password for sudo commands"
        assert update_wizard.content_focus is ContentFocus.INPUT_FIELD
        assert update_wizard.mode is EditMode.INSERT
        mock_service.run_command.assert_not_called()

    def test_sudo_password_used_then_wiped(self, update_wizard, mock_service, keys):
        from onboarding.wizard import WizardAction

        update_wizard.selection.toggle_category(1)
        update_wizard.start_update_execution()
        keys.type(update_wizard, "pw")
        action = keys.press(update_wizard, "enter")
        assert action is WizardAction.EXECUTE_UPDATE

        raw = update_wizard.sudo_password._data
        update_wizard.perform(action, MagicMock())
        update_wizard.poll_messages()

        mock_service.run_command_sudo.assert_called_once_with("alice", ["pacman", "-Syu"], "pw")
        assert update_wizard.sudo_password.is_empty()
        assert not any(raw)

    def test_failed_command_leaves_reboot_locked(self, update_wizard, mock_service):
        from common.exceptions import CommandFailedError
        from onboarding.steps import StepId, StepResult

        mock_service.run_command.side_effect = CommandFailedError("Command failed: no network")
        update_wizard.start_update_execution()
        update_wizard.poll_messages()

        assert update_wizard.progress.result(StepId.UPDATE) is StepResult.FAILED
        assert update_wizard.progress.result(StepId.REBOOT) is StepResult.LOCKED
        assert update_wizard.message.text == "1 task(s) failed during installation"

    def test_package_list_usable_after_failed_update(self, update_wizard, mock_service, keys):
        from common.exceptions import CommandFailedError
        from onboarding.steps import StepId, StepResult

        mock_service.run_command.side_effect = CommandFailedError("Command failed: no network")
        update_wizard.start_update_execution()
        update_wizard.poll_messages()
        assert update_wizard.tasks[0].output == "Command failed: no network"

        keys.press(update_wizard, "escape", "j", "j", " ")
        assert update_wizard.selection.selected[0][1] is True

        mock_service.run_command.side_effect = None
        update_wizard.start_update_execution()
        update_wizard.poll_messages()

        assert mock_service.run_command.call_count == 3
        mock_service.run_command.assert_called_with("alice", ["flatpak", "install", "gimp"])
        assert update_wizard.progress.result(StepId.UPDATE) is StepResult.COMPLETED
        assert update_wizard.tasks == []

    def test_requires_created_user(self, update_wizard):
        update_wizard.created_username = None
        update_wizard.start_update_execution()
        assert update_wizard.message.text == "User must be created before running commands"

    def test_skip_unlocks_reboot(self, update_wizard, keys):
        from onboarding.steps import StepId, StepResult

        run_command(update_wizard, keys, "skip")

        assert update_wizard.progress.result(StepId.UPDATE) is StepResult.SKIPPED
        assert update_wizard.progress.result(StepId.REBOOT) is StepResult.PENDING

    def test_nothing_selected(self, live_config, mock_service, keys):
        from onboarding.config import CommandConfig, PackageItem, UpdateCategory
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import OnboardWizard

        live_config.updates = [UpdateCategory(
            name="Extras",
            packages=[PackageItem(title="GIMP", commands=[CommandConfig("gimp", ["flatpak", "install", "gimp"])])],
        )]
        wizard = OnboardWizard(live_config, mock_service, runner=InlineRunner())
        keys.press(wizard, "enter")
        wizard.progress.mark(StepId.REVIEW, StepResult.COMPLETED)

        wizard.start_update_execution()

        assert wizard.message.text == "No packages selected. Continuing to finish."
        assert wizard.progress.result(StepId.UPDATE) is StepResult.SKIPPED
        assert wizard.progress.result(StepId.REBOOT) is StepResult.PENDING

    def test_space_toggles_at_cursor(self, update_wizard, keys):
        keys.press(update_wizard, "escape", "j", "j", " ")
        assert update_wizard.selection.selected[0][1] is True


@pytest.mark.unit
class TestStepLocks:
    """Tests that commands cannot run or finish past a locked step."""

    @pytest.fixture
    def gated_wizard(self, dryrun_config, sample_updates):
        from onboarding.service import DryrunService
        from onboarding.wizard import OnboardWizard

        dryrun_config.updates = sample_updates
        return OnboardWizard(dryrun_config, DryrunService())

    def test_submit_on_locked_update_rejected(self, gated_wizard, keys):
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import LOCKED_MESSAGE

        keys.press(gated_wizard, "enter", "ctrl+h", "7")
        assert gated_wizard.current_step_id() is StepId.UPDATE

        assert run_command(gated_wizard, keys, "submit") is None
        assert gated_wizard.message.text == LOCKED_MESSAGE

        for _ in range(60):
            gated_wizard.tick()

        assert gated_wizard.progress.result(StepId.REVIEW) is StepResult.PENDING
        assert gated_wizard.progress.result(StepId.UPDATE) is StepResult.LOCKED
        assert gated_wizard.progress.result(StepId.REBOOT) is StepResult.LOCKED

    def test_update_execution_refused_while_locked(self, gated_wizard, keys):
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import LOCKED_MESSAGE, WizardAction

        keys.press(gated_wizard, "enter")
        gated_wizard.perform(WizardAction.EXECUTE_UPDATE, MagicMock())

        assert gated_wizard.message.text == LOCKED_MESSAGE
        assert not gated_wizard.is_executing
        assert gated_wizard.progress.result(StepId.UPDATE) is StepResult.LOCKED

    def test_finish_needs_reboot_unlocked(self, gated_wizard, keys):
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import LOCKED_MESSAGE, WizardAction

        keys.press(gated_wizard, "enter")
        gated_wizard.progress.mark(StepId.REVIEW, StepResult.COMPLETED)

        assert run_command(gated_wizard, keys, "finish") is None
        assert gated_wizard.message.text == LOCKED_MESSAGE
        assert not gated_wizard.setup_complete

        gated_wizard.progress.mark(StepId.UPDATE, StepResult.SKIPPED)
        assert run_command(gated_wizard, keys, "finish") is WizardAction.EXIT_TO_LOGIN


@pytest.mark.unit
class TestNetwork:
    """Tests for the network step."""

    def test_offline_enter_launches_program(self, mock_service, live_config, keys):
        from onboarding.steps import StepId
        from onboarding.wizard import OnboardWizard, WizardAction

        mock_service.check_network.return_value = False
        wizard = OnboardWizard(live_config, mock_service, runner=InlineRunner())
        keys.press(wizard, "enter")
        wizard.select_step(wizard.progress.index_of(StepId.NETWORK))

        action = keys.press(wizard, "escape", "enter")
        assert wizard.perform(action, MagicMock()) is WizardAction.LAUNCH_NETWORK

    def test_recheck_after_program(self, mock_service, live_config, keys):
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import OnboardWizard

        mock_service.check_network.return_value = False
        wizard = OnboardWizard(live_config, mock_service, runner=InlineRunner())
        keys.press(wizard, "enter")
        wizard.select_step(wizard.progress.index_of(StepId.NETWORK))

        mock_service.check_network.return_value = True
        wizard.network_program_finished(None)
        wizard.poll_messages()

        assert wizard.network_connected
        assert wizard.progress.result(StepId.NETWORK) is StepResult.COMPLETED
        assert wizard.message.text == "Network connected"
        assert wizard.current_step_id() is StepId.PREFERENCES

    def test_program_error_reported(self, mock_service, live_config):
        from onboarding.wizard import OnboardWizard

        mock_service.check_network.return_value = False
        wizard = OnboardWizard(live_config, mock_service, runner=InlineRunner())
        wizard.network_program_finished("Failed to launch wifitui: not found")
        assert wizard.message.is_error
        wizard.poll_messages()
        assert wizard.message.text == "Still not connected to a network"

    def test_lost_connection_does_not_reopen_step(self, dryrun_wizard, keys):
        """
        Known non-guarantee: once Network is complete, losing connectivity
        later is not re-validated and the step stays complete.
        """
        from onboarding.steps import StepId, StepResult

        keys.press(dryrun_wizard, "enter")
        dryrun_wizard.handle_execution_message(NetworkChecked(False))

        assert not dryrun_wizard.network_connected
        assert dryrun_wizard.progress.result(StepId.NETWORK) is StepResult.COMPLETED


@pytest.mark.unit
class TestDryrunFlow:
    """End-to-end walk through a dry run."""

    def test_full_walkthrough_to_login(self, dryrun_wizard, keys):
        from onboarding.steps import StepId, StepResult
        from onboarding.wizard import WizardAction

        wizard = dryrun_wizard
        power = MagicMock()

        keys.press(wizard, "enter")
        wizard.perform(fill_user_form(wizard, keys), power)
        keys.press(wizard, "enter")      # locale
        keys.press(wizard, "enter")      # keyboard
        keys.press(wizard, "enter")      # network already connected
        keys.press(wizard, "enter")      # timezone
        assert wizard.current_step_id() is StepId.REVIEW

        wizard.perform(keys.press(wizard, "enter"), power)
        assert wizard.is_executing
        assert len(wizard.tasks) == 4

        for _ in range(41):
            wizard.tick()

        assert not wizard.is_executing
        assert wizard.review_completed
        assert wizard.current_step_id() is StepId.REBOOT

        wizard.perform(keys.press(wizard, "enter"), power)
        assert wizard.setup_complete
        assert wizard.confirm_action is not None

        assert keys.press(wizard, "y") is WizardAction.TRANSITION_TO_LOGIN
        power.reboot.assert_not_called()
        assert all(r in (StepResult.COMPLETED, StepResult.PENDING) for r in wizard.step_results)

    def test_spinner_cycles(self, dryrun_wizard):
        frames = []
        for _ in range(4):
            dryrun_wizard.tick()
            frames.append(dryrun_wizard.spinner)
        assert frames == ["/", "-", "\\", "|"]

    def test_wipe_zeroes_secrets(self, dryrun_wizard):
        dryrun_wizard.password.set("password1")
        raw = dryrun_wizard.password._data

        dryrun_wizard.wipe()

        assert not any(raw)
        assert dryrun_wizard.password.is_empty()
