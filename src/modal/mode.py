"""
Edit Mode State Machine

Normal, Insert and Command modes with a total transition table: any
(mode, action) pair missing from the table leaves the mode unchanged.
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Dict

logger = logging.getLogger(__name__)


class EditMode(Enum):
    """Modal editing states."""
    NORMAL = auto()
    INSERT = auto()
    COMMAND = auto()

    @property
    def display_name(self) -> str:
        return self.name

    def transition(self, action: "EditAction") -> "EditMode":
        """Return the mode reached by applying an action."""
        return VALID_TRANSITIONS.get(self, {}).get(action, self)


class EditAction(Enum):
    """Inputs that can change the edit mode."""
    ENTER_INSERT = auto()
    ENTER_COMMAND = auto()
    ESCAPE = auto()
    EXECUTE = auto()


# Format: {current_mode: {action: target_mode}}
VALID_TRANSITIONS: Dict[EditMode, Dict[EditAction, EditMode]] = {
    EditMode.NORMAL: {
        EditAction.ENTER_INSERT: EditMode.INSERT,
        EditAction.ENTER_COMMAND: EditMode.COMMAND,
    },
    EditMode.INSERT: {
        EditAction.ESCAPE: EditMode.NORMAL,
    },
    EditMode.COMMAND: {
        EditAction.ESCAPE: EditMode.NORMAL,
        EditAction.EXECUTE: EditMode.NORMAL,
    },
}
