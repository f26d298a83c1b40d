from __future__ import annotations

from dataclasses import dataclass, field

from composedtask.graph.types import GraphNode

# Integer.MAX_VALUE on the server side; treated as "no bound".
UNBOUNDED = 2**31 - 1

DEFAULT_DATAFLOW_SERVER_URI = "http://localhost:9393"
DEFAULT_PLATFORM_NAME = "default"


class ConfigError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ConfigError(f"'{name}' must be >= 0, got {value}")


@dataclass(frozen=True)
class SplitPoolConfig:
    core_pool_size: int = 4
    max_pool_size: int = UNBOUNDED
    keep_alive_seconds: int = 60
    queue_capacity: int = UNBOUNDED
    allow_core_thread_timeout: bool = False
    wait_for_tasks_to_complete_on_shutdown: bool = False

    def __post_init__(self) -> None:
        _require_non_negative("splitThreadCorePoolSize", self.core_pool_size)
        _require_non_negative("splitThreadMaxPoolSize", self.max_pool_size)
        _require_non_negative("splitThreadKeepAliveSeconds", self.keep_alive_seconds)
        _require_non_negative("splitThreadQueueCapacity", self.queue_capacity)

        if self.max_pool_size < max(self.core_pool_size, 1):
            raise ConfigError(
                f"'splitThreadMaxPoolSize' ({self.max_pool_size}) must be >= 1 and >= "
                f"'splitThreadCorePoolSize' ({self.core_pool_size})"
            )


@dataclass(frozen=True)
class ComposedTaskConfig:
    """Engine settings for one composed-task runner.

    Wait times are milliseconds. A ``max_wait_time`` of 0 means the runner
    waits for each task forever, which is the default and easy to leave
    in place by accident.
    """

    platform_name: str = DEFAULT_PLATFORM_NAME
    max_start_wait_time: int = 0
    max_wait_time: int = 0
    interval_time_between_checks: int = 10000
    split_pool: SplitPoolConfig = field(default_factory=SplitPoolConfig)
    uuid_instance_enabled: bool = False
    sequence_continue_on_failure: bool = False
    parent_execution_id: int | None = None
    composed_task_properties: dict[str, str] = field(default_factory=dict)
    composed_task_arguments: list[str] = field(default_factory=list)
    dataflow_server_uri: str = DEFAULT_DATAFLOW_SERVER_URI
    dataflow_server_username: str | None = None
    dataflow_server_password: str | None = None
    dataflow_server_access_token: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.platform_name, str) or len(self.platform_name.strip()) < 1:
            raise ConfigError("'platformName' must be a non-empty string")

        _require_non_negative("maxStartWaitTime", self.max_start_wait_time)
        _require_non_negative("maxWaitTime", self.max_wait_time)
        _require_non_negative("intervalTimeBetweenChecks", self.interval_time_between_checks)

        if bool(self.dataflow_server_username) != bool(self.dataflow_server_password):
            raise ConfigError(
                "'dataflowServerUsername' and 'dataflowServerPassword' must be given together"
            )


@dataclass
class ComposedTaskDefinition:
    settings: ComposedTaskConfig
    graph: GraphNode
