"""
Wizard step model.

The step sequence is computed once from configuration. Each step has a
StepResult; Update and Reboot start locked and unlock one way:

    Review  -> Completed             unlocks Update (or Reboot if no Update)
    Update  -> Completed | Skipped   unlocks Reboot
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional, Union

from .config import OnboardConfig

logger = logging.getLogger(__name__)


class StepId(Enum):
    USER = "user"
    LOCALE = "locale"
    KEYBOARD = "keyboard"
    NETWORK = "network"
    PREFERENCES = "preferences"
    REVIEW = "review"
    UPDATE = "update"
    REBOOT = "reboot"

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def short_name(self) -> str:
        return "Prefs" if self is StepId.PREFERENCES else self.title


_TITLES = {
    StepId.USER: "User",
    StepId.LOCALE: "Locale",
    StepId.KEYBOARD: "Keyboard",
    StepId.NETWORK: "Network",
    StepId.PREFERENCES: "Preferences",
    StepId.REVIEW: "Review",
    StepId.UPDATE: "Update",
    StepId.REBOOT: "Reboot",
}


class StepResult(Enum):
    PENDING = auto()
    COMPLETED = auto()
    SKIPPED = auto()
    FAILED = auto()
    LOCKED = auto()

    @property
    def is_done(self) -> bool:
        return self in (StepResult.COMPLETED, StepResult.SKIPPED)


@dataclass(frozen=True)
class MenuItem:
    id: StepId
    required: bool = False
    has_picker: bool = False
    has_form: bool = False


def build_menu_items(config: OnboardConfig) -> List[MenuItem]:
    """Compute the step sequence for a configuration."""
    items = [MenuItem(StepId.USER, required=True, has_form=True)]
    if config.locale.enabled:
        items.append(MenuItem(StepId.LOCALE, has_picker=True))
    if config.keyboard.enabled:
        items.append(MenuItem(StepId.KEYBOARD, has_picker=True))
    if config.network.enabled:
        items.append(MenuItem(StepId.NETWORK))
    if config.preferences.timezone_enabled:
        items.append(MenuItem(StepId.PREFERENCES, has_picker=True))
    items.append(MenuItem(StepId.REVIEW, required=True))
    if config.has_updates:
        items.append(MenuItem(StepId.UPDATE, has_form=True))
    items.append(MenuItem(StepId.REBOOT, required=True))
    return items


class StepProgress:
    """
    Step results kept in lockstep with the menu items.

    All result changes go through mark(), which applies the unlock rules
    and refuses to move a finished step back to Pending or Locked.
    """

    LOCKED_AT_START = (StepId.UPDATE, StepId.REBOOT)

    def __init__(self, items: List[MenuItem]):
        self.items = list(items)
        self.results: List[StepResult] = [
            StepResult.LOCKED if item.id in self.LOCKED_AT_START else StepResult.PENDING
            for item in self.items
        ]

    def __len__(self) -> int:
        return len(self.items)

    def index_of(self, step: StepId) -> Optional[int]:
        for i, item in enumerate(self.items):
            if item.id is step:
                return i
        return None

    def has(self, step: StepId) -> bool:
        return self.index_of(step) is not None

    def result(self, step: StepId) -> Optional[StepResult]:
        index = self.index_of(step)
        return None if index is None else self.results[index]

    def is_locked(self, index: int) -> bool:
        return self.results[index] is StepResult.LOCKED

    def mark(self, step: StepId, result: StepResult) -> bool:
        """
        Record a step result and unlock whatever it gates.

        Returns:
            False if the step is absent or the change would regress it
        """
        index = self.index_of(step)
        if index is None:
            return False

        current = self.results[index]
        if current.is_done and result in (StepResult.PENDING, StepResult.LOCKED):
            logger.debug(f"Ignoring {step.name} {current.name} -> {result.name}")
            return False

        self.results[index] = result
        logger.info(f"Step {step.name} is now {result.name}")

        if step is StepId.REVIEW and result is StepResult.COMPLETED:
            self._unlock(StepId.UPDATE if self.has(StepId.UPDATE) else StepId.REBOOT)
        elif step is StepId.UPDATE and result.is_done:
            self._unlock(StepId.REBOOT)
        return True

    def _unlock(self, step: StepId) -> None:
        index = self.index_of(step)
        if index is not None and self.results[index] is StepResult.LOCKED:
            self.results[index] = StepResult.PENDING
            logger.info(f"Unlocked step {step.name}")


# =============================================================================
# Tasks and execution messages
# =============================================================================

class TaskState(Enum):
    PENDING = auto()
    RUNNING = auto()
    SUCCESS = auto()
    FAILED = auto()


@dataclass
class TaskStatus:
    """One unit of work inside a step."""
    name: str
    state: TaskState = TaskState.PENDING
    output: Optional[str] = None
    progress: Optional[int] = None

    @property
    def is_finished(self) -> bool:
        return self.state in (TaskState.SUCCESS, TaskState.FAILED)


@dataclass(frozen=True)
class TaskStarted:
    index: int


@dataclass(frozen=True)
class TaskSucceeded:
    index: int
    output: Optional[str] = None


@dataclass(frozen=True)
class TaskFailed:
    index: int
    error: str


@dataclass(frozen=True)
class UserCreated:
    username: Optional[str]


@dataclass(frozen=True)
class StepComplete:
    result: StepResult


@dataclass(frozen=True)
class ReviewComplete:
    any_failed: bool


@dataclass(frozen=True)
class UpdateComplete:
    any_failed: bool


@dataclass(frozen=True)
class NetworkChecked:
    connected: bool


ExecutionMessage = Union[
    TaskStarted, TaskSucceeded, TaskFailed, UserCreated,
    StepComplete, ReviewComplete, UpdateComplete, NetworkChecked,
]
