from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Mapping

import requests

from composedtask.config.types import ComposedTaskConfig, DEFAULT_DATAFLOW_SERVER_URI

from .base import TaskExplorer, TaskLauncher
from .types import (
    LauncherError,
    LaunchRejectedError,
    PlatformCapacitySnapshot,
    PlatformInfo,
    TaskExecutionHandle,
)

logger = logging.getLogger(__name__)


class DataFlowClient(TaskLauncher, TaskExplorer):
    """Launcher and explorer backed by a Data Flow server's REST API."""

    def __init__(
        self,
        uri: str = DEFAULT_DATAFLOW_SERVER_URI,
        *,
        username: str | None = None,
        password: str | None = None,
        access_token: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ):
        if bool(username) != bool(password):
            raise ValueError("A username and a password must be given together")

        self.uri = uri.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

        if access_token:
            self.session.headers["Authorization"] = f"Bearer {access_token}"
            logger.debug("Using an access token for %s", self.uri)
        elif username and password:
            self.session.auth = (username, password)
            logger.debug("Using basic authentication for %s", self.uri)

    @classmethod
    def from_config(cls, config: ComposedTaskConfig) -> DataFlowClient:
        return cls(
            config.dataflow_server_uri,
            username=config.dataflow_server_username,
            password=config.dataflow_server_password,
            access_token=config.dataflow_server_access_token,
        )

    def launch(
        self, task_name: str, properties: dict[str, str], arguments: list[str]
    ) -> int | None:
        """Launch a task and return its execution id.

        Properties travel as one comma-separated ``key=value`` list, so a
        value containing a comma is refused rather than split by the server.
        """
        params = {"name": task_name}
        if properties:
            for key, value in properties.items():
                if "," in value:
                    raise LaunchRejectedError(
                        task_name, f"property '{key}' has a comma in its value: {value!r}"
                    )
            params["properties"] = ",".join(f"{k}={v}" for k, v in properties.items())
        if arguments:
            params["arguments"] = " ".join(arguments)

        response = self._request("POST", "/tasks/executions", params=params, task_name=task_name)
        with _decoding("/tasks/executions"):
            body = response.json()
            if isinstance(body, Mapping):
                body = body.get("executionId")
            return None if body is None else int(body)

    def current_executions(self) -> list[PlatformCapacitySnapshot]:
        response = self._request("GET", "/tasks/executions/current")
        with _decoding("/tasks/executions/current"):
            return [
                PlatformCapacitySnapshot(
                    name=item["name"],
                    maximum_task_executions=int(item["maximumTaskExecutions"]),
                    running_execution_count=int(item["runningExecutionCount"]),
                )
                for item in response.json()
            ]

    def list_platforms(self) -> list[PlatformInfo]:
        response = self._request("GET", "/tasks/platforms")
        with _decoding("/tasks/platforms"):
            items = response.json().get("_embedded", {}).get("launcherResourceList", [])
            return [PlatformInfo(name=item["name"], type=item.get("type")) for item in items]

    def get_execution(self, execution_id: int) -> TaskExecutionHandle | None:
        path = f"/tasks/executions/{execution_id}"
        response = self._request("GET", path, allow_missing=True)
        if response is None:
            return None

        with _decoding(path):
            body = response.json()
            exit_code = body.get("exitCode")
            return TaskExecutionHandle(
                execution_id=int(body.get("executionId", execution_id)),
                start_time=_parse_time(body.get("startTime")),
                end_time=_parse_time(body.get("endTime")),
                exit_code=None if exit_code is None else int(exit_code),
            )

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        task_name: str | None = None,
        allow_missing: bool = False,
    ) -> requests.Response | None:
        url = f"{self.uri}{path}"
        try:
            response = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise LauncherError(f"{method} {url} failed: {exc}") from exc

        if allow_missing and response.status_code == 404:
            return None

        if task_name is not None and 400 <= response.status_code < 500:
            raise LaunchRejectedError(task_name, f"server answered {response.status_code}: {response.text}")

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise LauncherError(f"{method} {url} failed: {exc}") from exc

        return response


def _parse_time(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


@contextmanager
def _decoding(path: str) -> Iterator[None]:
    try:
        yield
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise LauncherError(f"Unexpected response from {path}: {exc!r}") from exc
