"""
Insert-mode editing shared by the login screen and the wizard.
"""

from __future__ import annotations

from .buffer import InputBuffer
from .keys import KeyPress


def delete_word_back(buffer: InputBuffer) -> None:
    """Delete the whitespace run before the cursor, then the word before it."""
    while buffer.cursor > 0 and buffer.char_before_cursor().isspace():
        buffer.delete_back()
    while buffer.cursor > 0 and not buffer.char_before_cursor().isspace():
        buffer.delete_back()


def apply_edit_key(buffer: InputBuffer, key: KeyPress) -> bool:
    """
    Apply an editing key to a buffer.

    Handles cursor movement, deletion and the Ctrl chords (u clear,
    a start, e end, w delete word). Printable characters are inserted.

    Returns:
        True if the key was consumed
    """
    if key.ctrl:
        if key.key == "u":
            buffer.clear()
        elif key.key == "a":
            buffer.move_start()
        elif key.key == "e":
            buffer.move_end()
        elif key.key == "w":
            delete_word_back(buffer)
        else:
            return False
        return True

    if key.char is not None:
        buffer.insert(key.char)
        return True

    if key.key == "backspace":
        buffer.delete_back()
    elif key.key == "delete":
        buffer.delete_forward()
    elif key.key == "left":
        buffer.move_left()
    elif key.key == "right":
        buffer.move_right()
    elif key.key == "home":
        buffer.move_start()
    elif key.key == "end":
        buffer.move_end()
    else:
        return False
    return True
