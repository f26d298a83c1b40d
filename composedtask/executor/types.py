from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum

from composedtask.graph.types import GraphNode


class ExecutionError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnknownPlatformError(ExecutionError):
    def __init__(self, platform_name: str, known: list[str]):
        if known:
            message = (
                f"The platform name '{platform_name}' does not match one of the "
                f"configured task platforms: [{', '.join(known)}]"
            )
        else:
            message = "The server has no task platforms configured"
        super().__init__(message)
        self.platform_name = platform_name
        self.known = known


class CapacityExceededError(ExecutionError):
    def __init__(self, platform_name: str, maximum_task_executions: int | None = None):
        limit = "" if maximum_task_executions is None else f": ({maximum_task_executions})"
        super().__init__(
            f"The task platform {platform_name} has reached its concurrent task "
            f"execution limit{limit}"
        )
        self.platform_name = platform_name
        self.maximum_task_executions = maximum_task_executions


class PollTimeoutError(ExecutionError):
    def __init__(self, execution_id: int, waited_s: float, started: bool):
        what = "complete" if started else "start"
        super().__init__(
            f"Timeout occurred while processing task with Execution Id {execution_id}: "
            f"did not {what} within {waited_s:.3f}s"
        )
        self.execution_id = execution_id
        self.waited_s = waited_s
        self.started = started


class TaskFailedError(ExecutionError):
    def __init__(self, execution_id: int, exit_code: int | None):
        if exit_code is None:
            message = f"Execution {execution_id} returned a null exit code"
        else:
            message = f"Execution {execution_id} returned a non zero exit code: {exit_code}"
        super().__init__(message)
        self.execution_id = execution_id
        self.exit_code = exit_code


class RunCancelledError(ExecutionError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class Status(Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ExecutionOutcome:
    status: Status
    node: GraphNode | None
    step_name: str | None = None
    execution_id: int | None = None
    exit_code: int | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.status is Status.FAILED


@dataclass(frozen=True)
class StepResult:
    step_name: str
    task_name: str
    status: Status
    execution_id: int | None
    exit_code: int | None
    duration_s: float
    error: str | None = None


@dataclass(frozen=True)
class RunResult:
    order: list[str]
    results: dict[str, StepResult]
    failed: list[str]
    skipped: list[str]
    outcome: ExecutionOutcome

    @property
    def status(self) -> Status:
        return self.outcome.status


class RunRecorder:
    """Collects step results from every thread of one run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: dict[str, StepResult] = {}

    def record(self, result: StepResult) -> None:
        with self._lock:
            self._results[result.step_name] = result

    def snapshot(self) -> dict[str, StepResult]:
        with self._lock:
            return dict(self._results)


@dataclass
class RunContext:
    """Per-run state shared by every component executing one plan.

    ``stop_event`` means no new work may start; ``cancel_event`` also
    abandons waits on tasks that were already launched.
    """

    run_id: str | None = None
    parent_execution_id: int | None = None
    task_names: frozenset[str] = frozenset()
    stop_event: threading.Event = field(default_factory=threading.Event)
    cancel_event: threading.Event = field(default_factory=threading.Event)
    recorder: RunRecorder = field(default_factory=RunRecorder)

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set() or self.cancel_event.is_set()
