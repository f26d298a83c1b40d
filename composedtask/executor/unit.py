from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping

from composedtask.config.types import ComposedTaskConfig
from composedtask.graph.plan import LaunchDirective
from composedtask.launcher.base import TaskLauncher
from composedtask.launcher.types import (
    PARENT_EXECUTION_ID_ARGUMENT,
    PLATFORM_NAME_PROPERTY,
    RUN_ID_ARGUMENT,
    LauncherError,
    LaunchRejectedError,
    LaunchRequest,
    TaskExecutionHandle,
)

from .admission import AdmissionController
from .poller import CompletionPoller
from .types import (
    CapacityExceededError,
    ExecutionError,
    ExecutionOutcome,
    PollTimeoutError,
    RunCancelledError,
    RunContext,
    Status,
    StepResult,
    TaskFailedError,
)

logger = logging.getLogger(__name__)


def properties_for_task(task_name: str, composed_properties: Mapping[str, str]) -> dict[str, str]:
    """Pick the ``app.<task>.*`` and ``deployer.<task>.*`` entries for one task."""
    selected = {}
    for prefix in (f"app.{task_name}.", f"deployer.{task_name}."):
        for key, value in composed_properties.items():
            if key.startswith(prefix):
                selected[key[len(prefix):]] = value
    return selected


def arguments_for_task(
    task_name: str, composed_arguments: Iterable[str], task_names: Iterable[str]
) -> list[str]:
    """Route composed-task arguments to one task.

    ``--<task>.key=value`` goes to that task only, as ``--key=value``.
    Arguments prefixed with another task's name are dropped; the rest go to
    every task.
    """
    others = {f"{name}." for name in task_names if name != task_name}
    own = f"{task_name}."
    routed = []

    for argument in composed_arguments:
        body = argument[2:] if argument.startswith("--") else argument
        if body.startswith(own):
            routed.append("--" + body[len(own):])
        elif not any(body.startswith(prefix) for prefix in others):
            routed.append(argument)

    return routed


class ExecutionUnit:
    def __init__(
        self,
        launcher: TaskLauncher,
        admission: AdmissionController,
        poller: CompletionPoller,
        config: ComposedTaskConfig,
    ):
        self.launcher = launcher
        self.admission = admission
        self.poller = poller
        self.config = config

    def build_request(self, directive: LaunchDirective, ctx: RunContext) -> LaunchRequest:
        arguments = list(directive.arguments)
        arguments += arguments_for_task(
            directive.task_name, self.config.composed_task_arguments, ctx.task_names
        )
        # Values from an earlier run must not leak into this one.
        arguments = [
            a
            for a in arguments
            if not a.startswith(PARENT_EXECUTION_ID_ARGUMENT) and not a.startswith(RUN_ID_ARGUMENT)
        ]
        if ctx.parent_execution_id is not None:
            arguments.append(f"{PARENT_EXECUTION_ID_ARGUMENT}{ctx.parent_execution_id}")
        if ctx.run_id is not None:
            arguments.append(f"{RUN_ID_ARGUMENT}{ctx.run_id}")

        properties = properties_for_task(directive.task_name, self.config.composed_task_properties)
        properties.update(directive.properties)

        return LaunchRequest(
            task_name=directive.task_name,
            arguments=arguments,
            properties=properties,
            platform_name=self.config.platform_name,
        )

    def launch(self, directive: LaunchDirective, ctx: RunContext) -> TaskExecutionHandle:
        """Admit, validate and dispatch one task; does not wait for it."""
        if ctx.stopping:
            raise RunCancelledError(f"Not launching {directive.step_name}: the run is shutting down")

        if not self.admission.is_accepting_new_tasks(self.config.platform_name):
            raise CapacityExceededError(self.config.platform_name)

        request = self.build_request(directive, ctx)
        requested = request.properties.get(PLATFORM_NAME_PROPERTY)
        if requested and requested != request.platform_name:
            raise LaunchRejectedError(
                request.task_name,
                f"deployment property '{PLATFORM_NAME_PROPERTY}={requested}' does not match "
                f"the configured platform '{request.platform_name}'",
            )
        properties = {**request.properties, PLATFORM_NAME_PROPERTY: request.platform_name}

        logger.info("Launching task %s on platform %s", request.task_name, request.platform_name)
        execution_id = self.launcher.launch(request.task_name, properties, request.arguments)
        if execution_id is None:
            raise LaunchRejectedError(request.task_name, "the launcher returned no execution id")

        logger.info("Launched task %s - execution id is %s", request.task_name, execution_id)
        return TaskExecutionHandle(execution_id)

    def run(self, directive: LaunchDirective, ctx: RunContext) -> ExecutionOutcome:
        start = time.monotonic()

        try:
            handle = self.launch(directive, ctx)
        except (ExecutionError, LauncherError) as exc:
            logger.error("Step %s failed before launch: %s", directive.step_name, exc)
            return self._finish(directive, ctx, start, None, exc)

        handle = self.poller.await_terminal(
            handle,
            self.config.interval_time_between_checks / 1000,
            self.config.max_wait_time / 1000,
            max_start_wait=self.config.max_start_wait_time / 1000,
            cancel_event=ctx.cancel_event,
        )

        error: Exception | None = None
        if not handle.is_terminal:
            if ctx.cancel_event.is_set():
                error = RunCancelledError(
                    f"Stopped waiting on execution {handle.execution_id}; the task keeps running"
                )
            else:
                error = PollTimeoutError(
                    handle.execution_id, time.monotonic() - start, handle.is_started
                )
            logger.warning("Step %s: %s", directive.step_name, error)
        elif handle.exit_code != 0:
            error = TaskFailedError(handle.execution_id, handle.exit_code)

        return self._finish(directive, ctx, start, handle, error)

    def _finish(
        self,
        directive: LaunchDirective,
        ctx: RunContext,
        start: float,
        handle: TaskExecutionHandle | None,
        error: Exception | None,
    ) -> ExecutionOutcome:
        status = Status.FAILED if error is not None else Status.SUCCEEDED
        execution_id = handle.execution_id if handle else None
        exit_code = handle.exit_code if handle else None

        ctx.recorder.record(
            StepResult(
                step_name=directive.step_name,
                task_name=directive.task_name,
                status=status,
                execution_id=execution_id,
                exit_code=exit_code,
                duration_s=time.monotonic() - start,
                error=None if error is None else str(error),
            )
        )
        logger.info("Step %s finished: %s", directive.step_name, status.value)

        return ExecutionOutcome(
            status=status,
            node=directive.node,
            step_name=directive.step_name,
            execution_id=execution_id,
            exit_code=exit_code,
            error=error,
        )
