"""
Package selection for the Update step.

selected[category][package] is seeded from the configured defaults.
Required packages are always selected and cannot be toggled off.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .config import CommandConfig, UpdateCategory

logger = logging.getLogger(__name__)


class PackageSelection:
    """Selection matrix plus a cursor over category headers and packages."""

    def __init__(self, categories: List[UpdateCategory]):
        self.categories = categories
        self.selected: List[List[bool]] = [
            [pkg.is_default_enabled(cat.enabled_by_default) for pkg in cat.packages]
            for cat in categories
        ]
        self.category_cursor = 0
        # None means the cursor is on the category header
        self.package_cursor: Optional[int] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_category_fully_selected(self, c: int) -> bool:
        row = self.selected[c]
        return bool(row) and all(row)

    def is_category_partially_selected(self, c: int) -> bool:
        row = self.selected[c]
        return any(row) and not all(row)

    def is_category_any_selected(self, c: int) -> bool:
        return any(self.selected[c])

    def any_package_selected(self) -> bool:
        return any(any(row) for row in self.selected)

    def selected_commands(self) -> List[CommandConfig]:
        """Commands of every selected package, in declaration order."""
        commands = []
        for c, cat in enumerate(self.categories):
            for p, pkg in enumerate(cat.packages):
                if self.selected[c][p]:
                    commands.extend(pkg.commands)
        return commands

    def commands_need_sudo(self) -> bool:
        return any(cmd.sudo for cmd in self.selected_commands())

    # ------------------------------------------------------------------
    # Toggling
    # ------------------------------------------------------------------

    def toggle_category(self, c: int) -> None:
        """Select all packages, or deselect all but the required ones."""
        value = not self.is_category_fully_selected(c)
        packages = self.categories[c].packages
        self.selected[c] = [value or pkg.required for pkg in packages]
        logger.debug(f"Category {self.categories[c].name} -> {value}")

    def toggle_package(self, c: int, p: int) -> bool:
        """Flip one package. Returns False for required packages."""
        if self.categories[c].packages[p].required:
            return False
        self.selected[c][p] = not self.selected[c][p]
        return True

    def toggle_at_cursor(self) -> bool:
        if not self.categories:
            return False
        if self.package_cursor is None:
            self.toggle_category(self.category_cursor)
            return True
        return self.toggle_package(self.category_cursor, self.package_cursor)

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> Tuple[int, Optional[int]]:
        return self.category_cursor, self.package_cursor

    def _rows(self) -> List[Tuple[int, Optional[int]]]:
        rows: List[Tuple[int, Optional[int]]] = []
        for c, cat in enumerate(self.categories):
            rows.append((c, None))
            rows.extend((c, p) for p in range(len(cat.packages)))
        return rows

    def _move(self, delta: int) -> None:
        rows = self._rows()
        if not rows:
            return
        index = rows.index(self.cursor) + delta
        index = max(0, min(index, len(rows) - 1))
        self.category_cursor, self.package_cursor = rows[index]

    def move_down(self) -> None:
        self._move(1)

    def move_up(self) -> None:
        self._move(-1)
