from __future__ import annotations

import logging
import threading
import uuid

from composedtask.config import ComposedTaskConfig
from composedtask.graph import (
    ExecutionPlan,
    GraphNode,
    LaunchDirective,
    PlanEntry,
    SequencePlan,
    SplitPlan,
    compile_graph,
)
from composedtask.launcher import TaskExplorer, TaskLauncher

from .admission import AdmissionController
from .poller import CompletionPoller
from .sequence import SequenceRunner
from .split import SplitCoordinator
from .types import ExecutionOutcome, RunContext, RunResult, Status
from .unit import ExecutionUnit

logger = logging.getLogger(__name__)


class ComposedTaskRunner:
    """Runs composed tasks against one launcher.

    The configured platform is checked when the runner is built, so a
    misconfigured platform fails before anything is launched.
    """

    def __init__(
        self,
        config: ComposedTaskConfig,
        launcher: TaskLauncher,
        explorer: TaskExplorer,
        *,
        poller: CompletionPoller | None = None,
    ):
        self.config = config
        self.launcher = launcher
        self.explorer = explorer

        self.admission = AdmissionController(launcher, config.platform_name)
        self.admission.verify_platform()

        self.poller = poller or CompletionPoller(explorer)
        self.unit = ExecutionUnit(launcher, self.admission, self.poller, config)
        self.splits = SplitCoordinator(self.dispatch, config.split_pool)
        self.sequences = SequenceRunner(
            self.dispatch, continue_on_failure=config.sequence_continue_on_failure
        )

        self._stop = threading.Event()
        self._cancel = threading.Event()

        if config.max_wait_time == 0:
            logger.debug("maxWaitTime is 0: waiting on each task without a time limit")

    def dispatch(self, entry: PlanEntry, ctx: RunContext) -> ExecutionOutcome:
        match entry:
            case LaunchDirective():
                return self.unit.run(entry, ctx)
            case SplitPlan():
                return self.splits.run(entry, ctx)
            case SequencePlan():
                return self.sequences.run(entry, ctx)
            case _:
                raise TypeError(f"Unknown plan entry: {entry!r}")

    def run(self, graph: GraphNode | ExecutionPlan) -> RunResult:
        plan = graph if isinstance(graph, ExecutionPlan) else compile_graph(graph)

        ctx = RunContext(
            run_id=str(uuid.uuid4()) if self.config.uuid_instance_enabled else None,
            parent_execution_id=self.config.parent_execution_id,
            task_names=plan.task_names(),
            stop_event=self._stop,
            cancel_event=self._cancel,
        )
        if ctx.run_id is not None:
            logger.info("Composed task run id is %s", ctx.run_id)

        outcome = self.dispatch(plan.root, ctx)
        return self._result(plan, ctx, outcome)

    def shutdown(self) -> None:
        """Stop the runner.

        No new task or split starts after this call. Unless the split pool
        waits for tasks on shutdown, waits on launched tasks are abandoned;
        the tasks themselves keep running on their platform.
        """
        self._stop.set()
        if not self.config.split_pool.wait_for_tasks_to_complete_on_shutdown:
            self._cancel.set()
        self.splits.shutdown()

    def _result(self, plan: ExecutionPlan, ctx: RunContext, outcome: ExecutionOutcome) -> RunResult:
        order = plan.step_names()
        results = ctx.recorder.snapshot()
        failed = [name for name in order if name in results and results[name].status is Status.FAILED]
        skipped = [name for name in order if name not in results]

        logger.info(
            "Composed task %s: %d steps run, %d failed, %d skipped",
            outcome.status.value,
            len(results),
            len(failed),
            len(skipped),
        )
        return RunResult(order, results, failed, skipped, outcome)
