"""
Modal (vim-style) input engine shared by the greeter and the wizard.
"""

from .buffer import InputBuffer
from .mode import EditMode, EditAction, VALID_TRANSITIONS
from .command import Command, CommandKind, parse_command
from .keys import KeyPress
from .editor import apply_edit_key, delete_word_back

__all__ = [
    "InputBuffer",
    "EditMode", "EditAction", "VALID_TRANSITIONS",
    "Command", "CommandKind", "parse_command",
    "KeyPress",
    "apply_edit_key", "delete_word_back",
]
