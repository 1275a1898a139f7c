"""
Terminal-independent key model.

Controllers consume KeyPress values; front-ends translate their native
key events into them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

# Textual key names mapped onto ours where they differ
_ALIASES: Dict[str, str] = {
    "shift+tab": "backtab",
    "ctrl+i": "tab",
    "ctrl+m": "enter",
    "ctrl+j": "enter",
    "ctrl+left_square_bracket": "escape",
    "pageup": "page_up",
    "pagedown": "page_down",
}


@dataclass(frozen=True)
class KeyPress:
    """
    A single key press.

    Attributes:
        key: Named key ("enter", "escape", "f2", ...) or the character itself
        char: Printable character, if the key produces one
        ctrl: Control modifier held
    """
    key: str
    char: Optional[str] = None
    ctrl: bool = False

    @classmethod
    def of(cls, text: str) -> "KeyPress":
        """
        Build a key press from a short name.

        "a" is a character, "ctrl+w" a control chord, anything else a
        named key such as "enter" or "f12".
        """
        if text.startswith("ctrl+") and len(text) > 5:
            return cls(text[5:], None, True)
        if len(text) == 1:
            return cls(text, text, False)
        return cls(text, None, False)

    @classmethod
    def from_textual(cls, event: Any) -> "KeyPress":
        """Translate a textual Key event."""
        name = _ALIASES.get(event.key, event.key)
        char = event.character if event.is_printable else None
        if name.startswith("ctrl+"):
            return cls(name[5:], None, True)
        if char is not None:
            return cls(char, char, False)
        return cls(name, None, False)

    def is_char(self, *chars: str) -> bool:
        return not self.ctrl and self.char is not None and self.char in chars

    def is_ctrl(self, letter: str) -> bool:
        return self.ctrl and self.key == letter

    def is_named(self, *names: str) -> bool:
        return not self.ctrl and self.char is None and self.key in names
