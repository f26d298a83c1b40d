from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, wait
from typing import Callable

from composedtask.config.types import SplitPoolConfig
from composedtask.graph.plan import PlanEntry, SplitPlan

from .types import (
    ExecutionError,
    ExecutionOutcome,
    RunCancelledError,
    RunContext,
    Status,
)

logger = logging.getLogger(__name__)

Dispatch = Callable[[PlanEntry, RunContext], ExecutionOutcome]


def pool_size(pool: SplitPoolConfig, branch_count: int) -> tuple[int, int]:
    """Return ``(workers, rejected)`` for submitting ``branch_count`` branches at once.

    Workers are added up to the core size, further branches wait in the
    queue, and only a full queue grows the pool towards the max size.
    Branches that fit nowhere are rejected.
    """
    if branch_count < 1:
        return 0, 0

    core = min(branch_count, pool.core_pool_size)
    queued = min(branch_count - core, pool.queue_capacity)
    overflow = branch_count - core - queued
    extra = min(overflow, pool.max_pool_size - pool.core_pool_size)
    rejected = overflow - extra
    return max(core + extra, 1), rejected


class SplitCoordinator:
    def __init__(self, dispatch: Dispatch, pool: SplitPoolConfig):
        self.dispatch = dispatch
        self.pool = pool
        self._lock = threading.Lock()
        self._executors: set[ThreadPoolExecutor] = set()
        self._shutdown = False

    def run(self, split: SplitPlan, ctx: RunContext) -> ExecutionOutcome:
        """Run every branch concurrently and wait for all of them.

        A failed branch never cancels its siblings; tasks already launched
        cannot be stopped from here.
        """
        branches = list(split.branches)
        workers, rejected = pool_size(self.pool, len(branches))
        accepted, refused = branches[: len(branches) - rejected], branches[len(branches) - rejected :]

        with self._lock:
            if self._shutdown or ctx.stopping:
                error = RunCancelledError("Split not started: the runner is shutting down")
                return ExecutionOutcome(Status.FAILED, split.node, error=error)
            executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="split")
            self._executors.add(executor)
            # Submitted under the lock so shutdown() never sees a half-submitted split.
            futures: list[Future[ExecutionOutcome]] = [
                executor.submit(self.dispatch, branch, ctx) for branch in accepted
            ]

        logger.debug(
            "Split of %d branches on %d workers (core=%d, max=%d, queue=%d, keep_alive=%ds, core_timeout=%s)",
            len(branches),
            workers,
            self.pool.core_pool_size,
            self.pool.max_pool_size,
            self.pool.queue_capacity,
            self.pool.keep_alive_seconds,
            self.pool.allow_core_thread_timeout,
        )

        try:
            wait(futures)
        finally:
            with self._lock:
                self._executors.discard(executor)
            executor.shutdown(wait=False)

        outcomes: list[ExecutionOutcome] = []
        fatal: BaseException | None = None

        for branch, future in zip(accepted, futures):
            try:
                outcomes.append(future.result())
            except CancelledError:
                error = RunCancelledError("Branch abandoned on shutdown")
                outcomes.append(ExecutionOutcome(Status.FAILED, branch.node, error=error))
            except Exception as exc:
                logger.error("Split branch raised: %s", exc)
                fatal = fatal or exc

        for branch in refused:
            error = ExecutionError("Branch rejected: split pool and queue are full")
            logger.error("%s", error)
            outcomes.append(ExecutionOutcome(Status.FAILED, branch.node, error=error))

        # Every branch has finished before a fatal error is passed up.
        if fatal is not None:
            raise fatal

        failed = [o for o in outcomes if o.failed]
        if failed:
            return ExecutionOutcome(Status.FAILED, split.node, error=failed[0].error)
        return ExecutionOutcome(Status.SUCCEEDED, split.node)

    def shutdown(self) -> None:
        """Stop accepting splits.

        Running branches are awaited when the pool is configured to wait for
        tasks on shutdown; otherwise queued branches are dropped.
        """
        with self._lock:
            self._shutdown = True
            executors = list(self._executors)

        wait_for_tasks = self.pool.wait_for_tasks_to_complete_on_shutdown
        for executor in executors:
            executor.shutdown(wait=wait_for_tasks, cancel_futures=not wait_for_tasks)
