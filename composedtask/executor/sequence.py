from __future__ import annotations

import logging

from composedtask.graph.plan import SequencePlan

from .split import Dispatch
from .types import ExecutionOutcome, RunCancelledError, RunContext, Status

logger = logging.getLogger(__name__)


class SequenceRunner:
    def __init__(self, dispatch: Dispatch, *, continue_on_failure: bool = False):
        self.dispatch = dispatch
        self.continue_on_failure = continue_on_failure

    def run(self, sequence: SequencePlan, ctx: RunContext) -> ExecutionOutcome:
        """Run entries in document order, stopping at the first failure.

        With ``continue_on_failure`` the remaining entries still run and the
        sequence reports the first failure once it is done.
        """
        first_failure: ExecutionOutcome | None = None

        for index, entry in enumerate(sequence.entries):
            if ctx.stopping:
                error = RunCancelledError("Sequence stopped: the runner is shutting down")
                return ExecutionOutcome(Status.FAILED, sequence.node, error=error)

            outcome = self.dispatch(entry, ctx)
            if not outcome.failed:
                continue

            if not self.continue_on_failure:
                remaining = len(sequence.entries) - index - 1
                if remaining:
                    logger.info("Sequence failed, %d remaining entries not run", remaining)
                return ExecutionOutcome(Status.FAILED, sequence.node, error=outcome.error)

            logger.warning("Continuing sequence after failure: %s", outcome.error)
            first_failure = first_failure or outcome

        if first_failure is not None:
            return ExecutionOutcome(Status.FAILED, sequence.node, error=first_failure.error)
        return ExecutionOutcome(Status.SUCCEEDED, sequence.node)
