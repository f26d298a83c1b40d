import json
import re
import tomllib
from pathlib import Path
from typing import Any, Mapping

import yaml

from composedtask.graph.types import GraphNode, Label, Sequence, Split, Task

from .types import (
    ComposedTaskConfig,
    ComposedTaskDefinition,
    ConfigError,
    SplitPoolConfig,
    UnsupportedConfigFormatError,
)

_INT_KEYS = {
    "max_start_wait_time",
    "max_wait_time",
    "interval_time_between_checks",
    "split_thread_core_pool_size",
    "split_thread_max_pool_size",
    "split_thread_keep_alive_seconds",
    "split_thread_queue_capacity",
    "parent_execution_id",
}

_BOOL_KEYS = {
    "split_thread_allow_core_thread_timeout",
    "split_thread_wait_for_tasks_to_complete_on_shutdown",
    "uuid_instance_enabled",
    "sequence_continue_on_failure",
}

_STR_KEYS = {
    "platform_name",
    "dataflow_server_uri",
    "dataflow_server_username",
    "dataflow_server_password",
    "dataflow_server_access_token",
}

_OTHER_KEYS = {"graph", "composed_task_properties", "composed_task_arguments"}

_POOL_KEYS = {
    "split_thread_core_pool_size": "core_pool_size",
    "split_thread_max_pool_size": "max_pool_size",
    "split_thread_keep_alive_seconds": "keep_alive_seconds",
    "split_thread_queue_capacity": "queue_capacity",
    "split_thread_allow_core_thread_timeout": "allow_core_thread_timeout",
    "split_thread_wait_for_tasks_to_complete_on_shutdown": "wait_for_tasks_to_complete_on_shutdown",
}

_NODE_KINDS = ("task", "sequence", "split", "label")


def load_config(path: str | Path) -> ComposedTaskDefinition:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    fmt = _detect_format(pure_path)
    raw_file = _parse_file(pure_path, fmt)
    return build_definition(raw_file)


def _detect_format(path: Path) -> str:
    fmt = path.suffix
    match fmt:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case _:
            raise UnsupportedConfigFormatError(
                f"Non supported file extension: {fmt}\n Expected format: .yml/.yaml, .toml, .json"
            )


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    match fmt:
        case "yaml":
            return _parse_yaml(path)
        case "toml":
            return _parse_toml(path)
        case "json":
            return _parse_json(path)
        case _:
            raise AssertionError("Unreachable")


def _parse_yaml(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML") from exc

    return _require_mapping(path, "YAML", raw_file)


def _parse_toml(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: invalid TOML") from exc

    return _require_mapping(path, "TOML", raw_file)


def _parse_json(path: Path) -> Mapping[str, Any]:
    try:
        raw_file = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON") from exc

    return _require_mapping(path, "JSON", raw_file)


def _require_mapping(path: Path, fmt: str, raw_file: Any) -> Mapping[str, Any]:
    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: {fmt} parsed succesfully but top-level value is not an object: {type(raw_file)}"
        )
    return raw_file


def normalize_key(key: str) -> str:
    """Map ``maxWaitTime``, ``max-wait-time`` and ``max_wait_time`` to one form."""
    snake = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", key.strip())
    return snake.replace("-", "_").lower()


def build_definition(raw: Mapping[str, Any]) -> ComposedTaskDefinition:
    fields: dict[str, Any] = {}

    for key, value in raw.items():
        if not isinstance(key, str):
            raise ConfigError(f"Config keys must be strings, got {type(key)}")

        norm = normalize_key(key)
        if norm not in _INT_KEYS | _BOOL_KEYS | _STR_KEYS | _OTHER_KEYS:
            raise ConfigError(f"Can't process: {key}")

        if norm in fields:
            raise ConfigError(f"Duplicate key after normalization: {norm}")

        fields[norm] = value

    if "graph" not in fields:
        raise ConfigError("Missing 'graph' field")

    graph = build_graph(fields.pop("graph"))
    settings = _build_settings(fields)
    return ComposedTaskDefinition(settings=settings, graph=graph)


def _build_settings(fields: Mapping[str, Any]) -> ComposedTaskConfig:
    kwargs: dict[str, Any] = {}
    pool: dict[str, Any] = {}

    for key, value in fields.items():
        if key in _INT_KEYS:
            # bool is an int subclass; reject it explicitly
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"'{key}' should be an integer")
        elif key in _BOOL_KEYS:
            if not isinstance(value, bool):
                raise ConfigError(f"'{key}' should be a boolean")
        elif key in _STR_KEYS:
            if not isinstance(value, str):
                raise ConfigError(f"'{key}' should be a string")
            value = value.strip()

        if key in _POOL_KEYS:
            pool[_POOL_KEYS[key]] = value
        else:
            kwargs[key] = value

    if "composed_task_properties" in kwargs:
        kwargs["composed_task_properties"] = _build_properties(
            "composed_task_properties", kwargs["composed_task_properties"]
        )

    if "composed_task_arguments" in kwargs:
        kwargs["composed_task_arguments"] = _build_arguments(
            "composed_task_arguments", kwargs["composed_task_arguments"]
        )

    return ComposedTaskConfig(split_pool=SplitPoolConfig(**pool), **kwargs)


def build_graph(raw: Any, where: str = "graph") -> GraphNode:
    """Build a graph from its structured document form.

    A string is a task name. A mapping has exactly one of ``task``,
    ``sequence``, ``split`` or ``label``.
    """
    if isinstance(raw, str):
        return _build_task(raw, where)

    if not isinstance(raw, Mapping):
        raise ConfigError(f"{where}: a node must be a task name or a mapping")

    if len(raw) != 1 or next(iter(raw)) not in _NODE_KINDS:
        raise ConfigError(
            f"{where}: a node must have exactly one of {', '.join(_NODE_KINDS)}"
        )

    kind, body = next(iter(raw.items()))
    match kind:
        case "task":
            return _build_task(body, f"{where}.task")
        case "sequence":
            return Sequence(_build_children(body, f"{where}.sequence"))
        case "split":
            return Split(_build_children(body, f"{where}.split"))
        case "label":
            return _build_label(body, f"{where}.label")
        case _:
            raise AssertionError("Unreachable")


def _build_children(raw: Any, where: str) -> list[GraphNode]:
    if not isinstance(raw, list):
        raise ConfigError(f"{where}: should be a list")

    if len(raw) < 1:
        raise ConfigError(f"{where}: needs at least one node")

    return [build_graph(item, f"{where}[{i}]") for i, item in enumerate(raw)]


def _build_task(raw: Any, where: str) -> Task:
    if isinstance(raw, str):
        raw = {"name": raw}

    if not isinstance(raw, Mapping):
        raise ConfigError(f"{where}: a task must be a name or a mapping")

    keys = {"name", "label", "arguments", "properties"}
    for field in raw.keys():
        if field not in keys:
            raise ConfigError(f"{where}: Can't process: {field}")

    name = raw.get("name")
    if not isinstance(name, str) or len(name.strip()) < 1:
        raise ConfigError(f"{where}: a task needs a non-empty 'name'")

    label = raw.get("label")
    if label is not None:
        if not isinstance(label, str) or len(label.strip()) < 1:
            raise ConfigError(f"{where}: 'label' should be a non-empty string")
        label = label.strip()

    arguments = _build_arguments(f"{where}.arguments", raw.get("arguments", []))
    properties = _build_properties(f"{where}.properties", raw.get("properties", {}))

    return Task(name.strip(), label, properties, tuple(arguments))


def _build_label(raw: Any, where: str) -> Label:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{where}: a label must be a mapping with 'name' and 'target'")

    if set(raw.keys()) != {"name", "target"}:
        raise ConfigError(f"{where}: a label needs exactly 'name' and 'target'")

    for key in ("name", "target"):
        if not isinstance(raw[key], str) or len(raw[key].strip()) < 1:
            raise ConfigError(f"{where}: '{key}' should be a non-empty string")

    return Label(raw["name"].strip(), raw["target"].strip())


def _build_arguments(where: str, raw: Any) -> list[str]:
    if not isinstance(raw, list):
        raise ConfigError(f"{where}: should be a list")

    arguments = []
    for item in raw:
        if not isinstance(item, str):
            raise ConfigError(f"{where}: {item} should be a string")
        if len(item.strip()) < 1:
            continue
        arguments.append(item.strip())

    return arguments


def _build_properties(where: str, raw: Any) -> dict[str, str]:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"{where}: should be a mapping")

    properties = {}
    for key, item in raw.items():
        if not isinstance(key, str):
            raise ConfigError(f"{where}: {key} should be a string")

        if len(key.strip()) < 1:
            raise ConfigError(f"{where}: A key can't be empty")

        # YAML/TOML scalars are accepted and passed on as text
        if isinstance(item, bool):
            item = str(item).lower()
        elif isinstance(item, (int, float)):
            item = str(item)
        elif not isinstance(item, str):
            raise ConfigError(f"{where}: {item} should be a string")

        properties[key.strip()] = item

    return properties
