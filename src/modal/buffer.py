"""
Cursor-addressable text buffer with secret semantics.

Characters are kept as UTF-32 code units in a bytearray so the storage
can be overwritten with zero bytes in place. Masked buffers are wiped on
clear, on set and at end of life.
"""

from __future__ import annotations

from typing import Optional

_WIDTH = 4
_ENCODING = "utf-32-le"


class InputBuffer:
    """
    Text buffer with a cursor in the range [0, len].

    Example:
        password = InputBuffer.masked()
        for ch in "hunter2":
            password.insert(ch)
        password.display("*")   # "*******"
        password.clear()        # old storage is zeroed
    """

    def __init__(self, masked: bool = False):
        self._data = bytearray()
        self._cursor = 0
        self._masked = masked

    @classmethod
    def masked(cls) -> "InputBuffer":
        """Create a buffer for secrets."""
        return cls(masked=True)

    def __del__(self):
        if getattr(self, "_masked", False):
            self.wipe()

    def __repr__(self) -> str:
        if self._masked:
            return f"InputBuffer(masked, len={len(self)})"
        return f"InputBuffer({self.content!r}, cursor={self._cursor})"

    def __len__(self) -> int:
        return len(self._data) // _WIDTH

    @property
    def is_masked(self) -> bool:
        return self._masked

    @property
    def content(self) -> str:
        return self._data.decode(_ENCODING)

    @property
    def cursor(self) -> int:
        return self._cursor

    def is_empty(self) -> bool:
        return not self._data

    def display(self, mask_char: str = "*") -> str:
        """Return text for rendering; masked buffers never reveal content."""
        if self._masked:
            return mask_char * len(self)
        return self.content

    def insert(self, ch: str) -> None:
        """Insert characters at the cursor and move past them."""
        if not ch:
            return
        encoded = ch.encode(_ENCODING)
        pos = self._cursor * _WIDTH
        self._data[pos:pos] = encoded
        self._cursor += len(encoded) // _WIDTH

    def delete_back(self) -> bool:
        """Delete the character before the cursor."""
        if self._cursor == 0:
            return False
        self._cursor -= 1
        self._remove_at(self._cursor)
        return True

    def delete_forward(self) -> bool:
        """Delete the character under the cursor."""
        if self._cursor >= len(self):
            return False
        self._remove_at(self._cursor)
        return True

    def char_before_cursor(self) -> Optional[str]:
        if self._cursor == 0:
            return None
        pos = (self._cursor - 1) * _WIDTH
        return bytes(self._data[pos:pos + _WIDTH]).decode(_ENCODING)

    def move_left(self) -> None:
        if self._cursor > 0:
            self._cursor -= 1

    def move_right(self) -> None:
        if self._cursor < len(self):
            self._cursor += 1

    def move_start(self) -> None:
        self._cursor = 0

    def move_end(self) -> None:
        self._cursor = len(self)

    def clear(self) -> None:
        """Zero the storage and empty the buffer."""
        self.wipe()

    def set(self, value: str) -> None:
        """Replace the content, leaving the cursor at the end."""
        self.wipe()
        self.insert(value)

    def take(self) -> str:
        """Return the content and clear the buffer."""
        value = self.content
        self.wipe()
        return value

    def wipe(self) -> None:
        """Overwrite the backing storage with zero bytes and release it."""
        data = self._data
        # Same-length slice assignment writes in place, no reallocation
        data[:] = bytes(len(data))
        self._data = bytearray()
        self._cursor = 0

    def _remove_at(self, index: int) -> None:
        pos = index * _WIDTH
        tail = len(self._data) - _WIDTH
        # Shift the tail left in place, then zero the freed last slot
        self._data[pos:tail] = self._data[pos + _WIDTH:]
        self._data[tail:] = bytes(_WIDTH)
        del self._data[tail:]
