from __future__ import annotations

import logging

from composedtask.launcher.base import TaskLauncher
from composedtask.launcher.types import PlatformCapacitySnapshot

from .types import UnknownPlatformError

logger = logging.getLogger(__name__)


class AdmissionController:
    """Checks platform capacity before a launch.

    Nothing is cached: the server's platform configuration may change between
    calls, so every check reads it again.
    """

    def __init__(self, launcher: TaskLauncher, platform_name: str):
        if not platform_name or len(platform_name.strip()) < 1:
            raise ValueError("platform_name must not be empty")
        self.launcher = launcher
        self.platform_name = platform_name

    def verify_platform(self) -> None:
        """Fail fast when the configured platform is not known to the launcher."""
        known = [platform.name for platform in self.launcher.list_platforms()]
        if self.platform_name not in known:
            raise UnknownPlatformError(self.platform_name, known)
        logger.debug("Platform %s is available (known: %s)", self.platform_name, known)

    def snapshot(self, platform: str | None = None) -> PlatformCapacitySnapshot:
        platform = platform or self.platform_name
        known: list[str] = []
        found: PlatformCapacitySnapshot | None = None

        for current in self.launcher.current_executions():
            known.append(current.name)
            if current.name == platform:
                found = current

        if found is None:
            raise UnknownPlatformError(platform, known)
        return found

    def is_accepting_new_tasks(self, platform: str | None = None) -> bool:
        snapshot = self.snapshot(platform)
        if not snapshot.has_capacity:
            logger.warning(
                "The task platform %s has reached its concurrent task execution limit: (%d)",
                snapshot.name,
                snapshot.maximum_task_executions,
            )
        return snapshot.has_capacity
