from .base import TaskExplorer, TaskLauncher
from .dataflow import DataFlowClient
from .types import (
    PARENT_EXECUTION_ID_ARGUMENT,
    PLATFORM_NAME_PROPERTY,
    RUN_ID_ARGUMENT,
    LauncherError,
    LaunchRejectedError,
    LaunchRequest,
    PlatformCapacitySnapshot,
    PlatformInfo,
    TaskExecutionHandle,
)

__all__ = [
    "TaskLauncher",
    "TaskExplorer",
    "DataFlowClient",
    "LaunchRequest",
    "TaskExecutionHandle",
    "PlatformCapacitySnapshot",
    "PlatformInfo",
    "LauncherError",
    "LaunchRejectedError",
    "PLATFORM_NAME_PROPERTY",
    "PARENT_EXECUTION_ID_ARGUMENT",
    "RUN_ID_ARGUMENT",
]
