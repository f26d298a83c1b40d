from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Deployment property the server reads to pick the launching platform.
PLATFORM_NAME_PROPERTY = "spring.cloud.dataflow.task.platformName"

PARENT_EXECUTION_ID_ARGUMENT = "--spring.cloud.task.parent-execution-id="

RUN_ID_ARGUMENT = "--run.id="


class LauncherError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class LaunchRejectedError(LauncherError):
    def __init__(self, task_name: str, reason: str):
        super().__init__(f"Launch of task '{task_name}' rejected: {reason}")
        self.task_name = task_name
        self.reason = reason


@dataclass(frozen=True)
class LaunchRequest:
    task_name: str
    arguments: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    platform_name: str | None = None


@dataclass(frozen=True)
class TaskExecutionHandle:
    execution_id: int
    start_time: datetime | None = None
    end_time: datetime | None = None
    exit_code: int | None = None

    @property
    def is_started(self) -> bool:
        return self.start_time is not None or self.end_time is not None

    @property
    def is_terminal(self) -> bool:
        return self.end_time is not None


@dataclass(frozen=True)
class PlatformCapacitySnapshot:
    name: str
    maximum_task_executions: int
    running_execution_count: int

    @property
    def has_capacity(self) -> bool:
        return self.running_execution_count < self.maximum_task_executions


@dataclass(frozen=True)
class PlatformInfo:
    name: str
    type: str | None = None
