"""
Tick-driven stand-in for the task runner, used in dry-run mode.

Each tick moves the active task 10 points closer to 100. A task at 100
is marked successful and the next one starts. The tick after the last
task finishes returns the completion callback, which the wizard handles
exactly like the real runner's completion message.
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import List, Optional

from .steps import TaskState, TaskStatus

logger = logging.getLogger(__name__)


class SimulationCallback(Enum):
    COMPLETE_REVIEW = auto()
    COMPLETE_UPDATE = auto()


class SimulationClock:
    INCREMENT = 10

    def __init__(self):
        self.active = False
        self.task_index = 0
        self.progress = 0
        self.callback: Optional[SimulationCallback] = None

    def start(self, callback: SimulationCallback) -> None:
        logger.info(f"Simulating tasks for {callback.name}")
        self.active = True
        self.task_index = 0
        self.progress = 0
        self.callback = callback

    def stop(self) -> None:
        self.active = False
        self.callback = None

    def advance(self, tasks: List[TaskStatus]) -> Optional[SimulationCallback]:
        """
        Apply one tick to the task list.

        Returns:
            The completion callback on the tick after the last task finishes
        """
        if not self.active:
            return None

        if not tasks:
            self.stop()
            return None

        if self.task_index >= len(tasks):
            callback = self.callback
            self.stop()
            return callback

        task = tasks[self.task_index]
        task.state = TaskState.RUNNING
        self.progress += self.INCREMENT
        task.progress = self.progress

        if self.progress >= 100:
            task.state = TaskState.SUCCESS
            self.task_index += 1
            self.progress = 0
        return None
