from __future__ import annotations

from abc import ABC, abstractmethod

from .types import PlatformCapacitySnapshot, PlatformInfo, TaskExecutionHandle


class TaskLauncher(ABC):
    """Starts tasks on a platform and reports platform capacity."""

    @abstractmethod
    def launch(
        self, task_name: str, properties: dict[str, str], arguments: list[str]
    ) -> int | None:
        """Launch ``task_name`` and return the new execution id."""

    @abstractmethod
    def current_executions(self) -> list[PlatformCapacitySnapshot]:
        """Return running/maximum execution counts for every platform."""

    @abstractmethod
    def list_platforms(self) -> list[PlatformInfo]:
        """Return the platforms tasks can be launched on."""


class TaskExplorer(ABC):
    """Read-only view of task execution state."""

    @abstractmethod
    def get_execution(self, execution_id: int) -> TaskExecutionHandle | None:
        """Return the latest state of an execution, or None if unknown."""
