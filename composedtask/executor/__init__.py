from .admission import AdmissionController
from .executor import ComposedTaskRunner
from .poller import CompletionPoller
from .sequence import SequenceRunner
from .split import SplitCoordinator, pool_size
from .types import (
    CapacityExceededError,
    ExecutionError,
    ExecutionOutcome,
    PollTimeoutError,
    RunCancelledError,
    RunContext,
    RunRecorder,
    RunResult,
    Status,
    StepResult,
    TaskFailedError,
    UnknownPlatformError,
)
from .unit import ExecutionUnit, arguments_for_task, properties_for_task

__all__ = [
    "ComposedTaskRunner",
    "AdmissionController",
    "CompletionPoller",
    "ExecutionUnit",
    "SequenceRunner",
    "SplitCoordinator",
    "pool_size",
    "arguments_for_task",
    "properties_for_task",
    "RunContext",
    "RunRecorder",
    "RunResult",
    "StepResult",
    "ExecutionOutcome",
    "Status",
    "ExecutionError",
    "UnknownPlatformError",
    "CapacityExceededError",
    "PollTimeoutError",
    "TaskFailedError",
    "RunCancelledError",
]
