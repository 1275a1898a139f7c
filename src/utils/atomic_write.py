"""
Atomic file replacement.

Writes go to a temp file in the same directory and are renamed over the
target, so readers (greetd on next start) see the old or the new file,
never a partial one.
"""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import Optional, Union


def atomic_write_text(
    path: Union[str, Path],
    content: str,
    mode: Optional[int] = None,
) -> None:
    """
    Replace a text file atomically.

    Args:
        path: Destination file path
        content: New file content
        mode: File permissions; defaults to the existing file's, else 0o644
    """
    path = Path(path)
    if mode is None:
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            mode = 0o644

    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
