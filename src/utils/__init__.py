"""
File helpers.
"""

from .atomic_write import atomic_write_text

__all__ = ["atomic_write_text"]
