"""
vimgreet First-Boot Onboarding Wizard

Sets up a new machine before its first login:
- User account creation
- Locale, keyboard and timezone selection
- Network setup through an external program
- Optional package installation
- Hand-off to the login screen
"""

from .config import OnboardConfig, load_config, parse_config, DEFAULT_CONFIG_PATH
from .steps import StepId, StepResult, StepProgress, MenuItem, TaskState, TaskStatus, build_menu_items
from .selection import PackageSelection
from .simulation import SimulationClock, SimulationCallback
from .runner import TaskRunner, Job
from .service import LiveService, DryrunService, create_service
from .wizard import OnboardWizard, WizardAction, PanelFocus, ContentFocus, ConfirmAction

__all__ = [
    # Config
    "OnboardConfig", "load_config", "parse_config", "DEFAULT_CONFIG_PATH",
    # Steps
    "StepId", "StepResult", "StepProgress", "MenuItem", "TaskState", "TaskStatus",
    "build_menu_items",
    # Execution
    "PackageSelection", "SimulationClock", "SimulationCallback", "TaskRunner", "Job",
    "LiveService", "DryrunService", "create_service",
    # Wizard
    "OnboardWizard", "WizardAction", "PanelFocus", "ContentFocus", "ConfirmAction",
]
