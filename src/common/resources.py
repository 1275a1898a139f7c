"""
Exit-time finalizers for secrets and greetd connections.

Both entry points register the buffer wipes and socket closes they own
here. Finalizers run once, newest first, from the entry point's
``finally`` block, from atexit, or from a SIGTERM/SIGHUP handler when
greetd or the init system tears the greeter down.
"""

from __future__ import annotations

import atexit
import logging
import signal
import threading
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Finalizer = Callable[[], None]


class CleanupRegistry:
    """
    Ordered set of named finalizers.

    Example:
        registry = CleanupRegistry()
        registry.register(client.close, "greetd socket")
        registry.register(controller.wipe, "password buffer")
        registry.cleanup_all()   # wipes, then closes
    """

    def __init__(self):
        self._entries: List[Tuple[str, Finalizer]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def register(self, callback: Finalizer, name: Optional[str] = None) -> None:
        label = name or getattr(callback, "__qualname__", repr(callback))
        with self._lock:
            self._entries.append((label, callback))

    def cleanup_all(self) -> int:
        """
        Run and forget every finalizer, newest first.

        A failing finalizer is logged and does not stop the rest.

        Returns:
            Number of finalizers that raised
        """
        with self._lock:
            entries, self._entries = self._entries, []

        failures = 0
        for label, callback in reversed(entries):
            try:
                callback()
            except Exception as e:
                failures += 1
                logger.warning(f"Finalizer '{label}' failed: {e}")
        return failures


_registry = CleanupRegistry()
atexit.register(_registry.cleanup_all)


def register_cleanup(callback: Finalizer, name: Optional[str] = None) -> None:
    _registry.register(callback, name)


def cleanup_all() -> int:
    return _registry.cleanup_all()


def _on_terminate(signum, frame):
    logger.info(f"Received {signal.Signals(signum).name}, running finalizers")
    _registry.cleanup_all()
    raise SystemExit(128 + signum)


def install_signal_handlers() -> None:
    """Run finalizers before exiting on SIGTERM or SIGHUP."""
    for sig in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, _on_terminate)
