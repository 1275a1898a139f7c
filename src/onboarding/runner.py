"""
Background task runner.

Work runs on a daemon thread and reports progress as ExecutionMessage
values on a queue. The wizard drains the queue from the UI loop; workers
never touch wizard state.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from common.exceptions import VimgreetError

from .steps import (
    ExecutionMessage,
    NetworkChecked,
    ReviewComplete,
    StepComplete,
    StepResult,
    TaskFailed,
    TaskStarted,
    TaskSucceeded,
    UpdateComplete,
    UserCreated,
)

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """One task: a callable returning optional output, plus its label."""
    name: str
    run: Callable[[], Optional[str]]
    creates_user: Optional[str] = None


class TaskRunner:
    """
    Runs job lists off the UI thread.

    Example:
        runner = TaskRunner()
        runner.run_review([Job("Setting locale", lambda: service.set_locale(x))])
        ...
        for message in runner.drain():
            wizard.handle_execution_message(message)
    """

    def __init__(self):
        self._queue: "queue.Queue[ExecutionMessage]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._probe: Optional[threading.Thread] = None

    @property
    def busy(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def post(self, message: ExecutionMessage) -> None:
        self._queue.put(message)

    def drain(self) -> List[ExecutionMessage]:
        """Return all queued messages in arrival order without blocking."""
        messages = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                return messages

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _spawn(self, name: str, target: Callable[[], None]) -> None:
        self._thread = threading.Thread(target=target, name=name, daemon=True)
        self._thread.start()

    def _run_jobs(self, jobs: List[Job]) -> bool:
        """Run jobs in order, continuing past failures. Returns any_failed."""
        any_failed = False
        for index, job in enumerate(jobs):
            self.post(TaskStarted(index))
            try:
                output = job.run()
            except VimgreetError as e:
                logger.error(f"Task '{job.name}' failed: {e}")
                any_failed = True
                self.post(TaskFailed(index, e.message))
                if job.creates_user is not None:
                    self.post(UserCreated(None))
                continue
            except Exception as e:
                logger.exception(f"Task '{job.name}' crashed")
                any_failed = True
                self.post(TaskFailed(index, str(e)))
                if job.creates_user is not None:
                    self.post(UserCreated(None))
                continue

            self.post(TaskSucceeded(index, output or None))
            if job.creates_user is not None:
                self.post(UserCreated(job.creates_user))
        return any_failed

    def run_user_step(self, job: Job) -> None:
        """Create the account, finishing with StepComplete."""
        def work():
            failed = self._run_jobs([job])
            self.post(StepComplete(StepResult.FAILED if failed else StepResult.COMPLETED))
        self._spawn("onboard-user", work)

    def run_review(self, jobs: List[Job]) -> None:
        """Apply the reviewed configuration, finishing with ReviewComplete."""
        def work():
            self.post(ReviewComplete(self._run_jobs(jobs)))
        self._spawn("onboard-review", work)

    def run_update(self, jobs: List[Job]) -> None:
        """Run package commands, finishing with UpdateComplete."""
        def work():
            self.post(UpdateComplete(self._run_jobs(jobs)))
        self._spawn("onboard-update", work)

    def check_network(self, probe: Callable[[], bool]) -> bool:
        """
        Probe connectivity in the background, posting NetworkChecked.

        Returns:
            False if a probe is already in flight
        """
        if self._probe is not None and self._probe.is_alive():
            return False

        def work():
            try:
                connected = probe()
            except Exception as e:
                logger.warning(f"Network probe failed: {e}")
                connected = False
            self.post(NetworkChecked(connected))

        self._probe = threading.Thread(target=work, name="onboard-network", daemon=True)
        self._probe.start()
        return True
