from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from composedtask.launcher.base import TaskExplorer
from composedtask.launcher.types import LauncherError, TaskExecutionHandle

logger = logging.getLogger(__name__)

# Floor for a zero interval so the loop never spins.
MIN_INTERVAL_S = 0.01


class CompletionPoller:
    def __init__(self, explorer: TaskExplorer, *, clock: Callable[[], float] = time.monotonic):
        self.explorer = explorer
        self.clock = clock

    def await_terminal(
        self,
        handle: TaskExecutionHandle,
        interval: float,
        max_wait: float,
        *,
        max_start_wait: float = 0,
        cancel_event: threading.Event | None = None,
    ) -> TaskExecutionHandle:
        """Poll until the execution ends, a wait budget runs out, or the wait is cancelled.

        All durations are seconds. ``max_wait`` or ``max_start_wait`` of 0 means
        no bound. The last observed handle is returned either way; callers check
        ``is_terminal``. The task itself is never cancelled.
        """
        cancel_event = cancel_event or threading.Event()
        sleep_s = interval if interval > 0 else MIN_INTERVAL_S
        started_at = self.clock()
        current = handle
        checks = 0

        logger.debug(
            "Waiting on execution %s: interval=%.3fs max_wait=%.3fs max_start_wait=%.3fs",
            handle.execution_id,
            sleep_s,
            max_wait,
            max_start_wait,
        )

        while True:
            if cancel_event.wait(sleep_s):
                logger.info("Stopped waiting on execution %s: cancelled", handle.execution_id)
                return current

            checks += 1
            latest = self._query(current.execution_id)
            if latest is not None:
                current = latest

            if current.is_terminal:
                logger.debug(
                    "Execution %s ended after %d checks (exit code %s)",
                    current.execution_id,
                    checks,
                    current.exit_code,
                )
                return current

            elapsed = self.clock() - started_at
            if max_start_wait > 0 and not current.is_started and elapsed >= max_start_wait:
                return current
            if max_wait > 0 and elapsed >= max_wait:
                return current

    def _query(self, execution_id: int) -> TaskExecutionHandle | None:
        try:
            return self.explorer.get_execution(execution_id)
        except LauncherError as exc:
            logger.warning("Could not read execution %s, will retry: %s", execution_id, exc)
            return None
