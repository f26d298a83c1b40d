# tests/conftest.py
from __future__ import annotations

import threading
from datetime import datetime

import pytest

from composedtask.config import ComposedTaskConfig, SplitPoolConfig
from composedtask.launcher import (
    LauncherError,
    PlatformCapacitySnapshot,
    PlatformInfo,
    TaskExecutionHandle,
    TaskExplorer,
    TaskLauncher,
)


class FakeTaskOperations(TaskLauncher, TaskExplorer):
    """In-memory launcher and explorer.

    Every launched execution ends on its ``polls_to_finish``-th query with the
    scripted exit code (0 by default). Tasks in ``never_end`` keep running,
    tasks in ``never_start`` are never reported as started, and a task in
    ``hold_until_launched`` keeps running until the named task is launched.
    """

    def __init__(
        self,
        *,
        platforms: tuple[str, ...] = ("default",),
        maximum_task_executions: int = 20,
        already_running: int = 0,
    ):
        self._lock = threading.Lock()
        self.platforms = list(platforms)
        self.maximum_task_executions = maximum_task_executions
        self.already_running = already_running

        self.exit_codes: dict[str, int | None] = {}
        self.polls_to_finish: dict[str, int] = {}
        self.never_end: set[str] = set()
        self.never_start: set[str] = set()
        self.hold_until_launched: dict[str, str] = {}
        self.rejected: set[str] = set()
        self.query_failures = 0

        self.launches: list[tuple[str, dict[str, str], list[str]]] = []
        self.ended: list[str] = []
        self.queries = 0
        self.capacity_checks = 0
        self._tasks: dict[int, str] = {}
        self._polls: dict[int, int] = {}
        self._handles: dict[int, TaskExecutionHandle] = {}

    # TaskLauncher

    def launch(self, task_name: str, properties: dict[str, str], arguments: list[str]) -> int | None:
        with self._lock:
            self.launches.append((task_name, dict(properties), list(arguments)))
            if task_name in self.rejected:
                return None

            execution_id = len(self.launches)
            self._tasks[execution_id] = task_name
            self._polls[execution_id] = 0
            start = None if task_name in self.never_start else datetime.now()
            self._handles[execution_id] = TaskExecutionHandle(execution_id, start_time=start)
            return execution_id

    def current_executions(self) -> list[PlatformCapacitySnapshot]:
        with self._lock:
            self.capacity_checks += 1
            live = sum(1 for h in self._handles.values() if not h.is_terminal)
            return [
                PlatformCapacitySnapshot(name, self.maximum_task_executions, self.already_running + live)
                for name in self.platforms
            ]

    def list_platforms(self) -> list[PlatformInfo]:
        return [PlatformInfo(name, "Local") for name in self.platforms]

    # TaskExplorer

    def get_execution(self, execution_id: int) -> TaskExecutionHandle | None:
        with self._lock:
            self.queries += 1
            if self.query_failures > 0:
                self.query_failures -= 1
                raise LauncherError("server unavailable")

            handle = self._handles.get(execution_id)
            if handle is None or handle.is_terminal:
                return handle

            task_name = self._tasks[execution_id]
            self._polls[execution_id] += 1
            if not self._may_end(task_name, execution_id):
                return handle

            handle = TaskExecutionHandle(
                execution_id,
                start_time=handle.start_time or datetime.now(),
                end_time=datetime.now(),
                exit_code=self.exit_codes.get(task_name, 0),
            )
            self._handles[execution_id] = handle
            self.ended.append(task_name)
            return handle

    def _may_end(self, task_name: str, execution_id: int) -> bool:
        if task_name in self.never_end or task_name in self.never_start:
            return False

        waiting_for = self.hold_until_launched.get(task_name)
        if waiting_for is not None and waiting_for not in self.launched_tasks():
            return False

        return self._polls[execution_id] >= self.polls_to_finish.get(task_name, 1)

    # helpers for assertions

    def launched_tasks(self) -> list[str]:
        return [name for name, _, _ in self.launches]

    def launch_of(self, task_name: str) -> tuple[dict[str, str], list[str]]:
        for name, properties, arguments in self.launches:
            if name == task_name:
                return properties, arguments
        raise KeyError(task_name)


def fast_config(**overrides: object) -> ComposedTaskConfig:
    """Config that polls every 10 ms so tests stay quick."""
    values: dict[str, object] = {"interval_time_between_checks": 10}
    values.update(overrides)
    return ComposedTaskConfig(**values)  # type: ignore[arg-type]


@pytest.fixture
def ops() -> FakeTaskOperations:
    return FakeTaskOperations()


@pytest.fixture
def config() -> ComposedTaskConfig:
    return fast_config()


@pytest.fixture
def small_pool() -> SplitPoolConfig:
    return SplitPoolConfig(core_pool_size=2, max_pool_size=2, queue_capacity=0)

