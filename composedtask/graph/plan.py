from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Union

from .types import (
    CycleError,
    GraphNode,
    Label,
    MalformedGraphError,
    Sequence,
    Split,
    Task,
)

logger = logging.getLogger(__name__)


class _Visit(Enum):
    UNVISITED = auto()
    VISITING = auto()


@dataclass(frozen=True)
class LaunchDirective:
    step_name: str
    task_name: str
    label: str | None
    properties: dict[str, str]
    arguments: tuple[str, ...]
    node: GraphNode = field(compare=False, repr=False)


@dataclass(frozen=True)
class SequencePlan:
    entries: tuple[PlanEntry, ...]
    node: GraphNode = field(compare=False, repr=False)


@dataclass(frozen=True)
class SplitPlan:
    branches: tuple[PlanEntry, ...]
    node: GraphNode = field(compare=False, repr=False)


PlanEntry = Union[LaunchDirective, SequencePlan, SplitPlan]


@dataclass(frozen=True)
class ExecutionPlan:
    root: PlanEntry
    trace: tuple[str, ...]

    def directives(self) -> Iterator[LaunchDirective]:
        """Yield every launch directive in document order."""
        stack: list[PlanEntry] = [self.root]
        while stack:
            entry = stack.pop()
            match entry:
                case LaunchDirective():
                    yield entry
                case SequencePlan(entries=entries):
                    stack.extend(reversed(entries))
                case SplitPlan(branches=branches):
                    stack.extend(reversed(branches))

    def step_names(self) -> list[str]:
        return [d.step_name for d in self.directives()]

    def task_names(self) -> frozenset[str]:
        return frozenset(d.task_name for d in self.directives())


def compile_graph(root: GraphNode) -> ExecutionPlan:
    """Compile a graph into an immutable execution plan.

    The plan mirrors the graph one-for-one. Labels are resolved to the task
    they name; undefined or cyclic label targets raise ``MalformedGraphError``.
    """
    definitions = _collect_labels(root)
    compiler = _Compiler(definitions)
    plan = ExecutionPlan(root=compiler.visit(root), trace=tuple(compiler.trace))
    for event in plan.trace:
        logger.debug("plan: %s", event)
    return plan


def _collect_labels(root: GraphNode) -> dict[str, Task | Label]:
    definitions: dict[str, Task | Label] = {}
    worklist: list[GraphNode] = [root]

    while worklist:
        node = worklist.pop()
        name: str | None = None
        match node:
            case Task(label=label):
                name = label
            case Label(name=label_name):
                name = label_name
            case Sequence(children=children):
                worklist.extend(children)
            case Split(branches=branches):
                worklist.extend(branches)
            case _:
                raise MalformedGraphError(f"Unknown graph node: {node!r}")

        if name is None:
            continue
        if len(name.strip()) < 1:
            raise MalformedGraphError("A label can't be empty")
        if name in definitions:
            raise MalformedGraphError(f"Duplicate label: {name}")
        definitions[name] = node

    return definitions


class _Compiler:
    def __init__(self, definitions: dict[str, Task | Label]):
        self.definitions = definitions
        self.trace: list[str] = []
        self._suffixes: dict[str, int] = {}
        self._resolved: dict[str, Task] = {}

    def visit(self, node: GraphNode) -> PlanEntry:
        match node:
            case Task():
                return self._visit_task(node)
            case Label():
                return self._visit_label(node)
            case Sequence():
                return self._visit_sequence(node)
            case Split():
                return self._visit_split(node)
            case _:
                raise MalformedGraphError(f"Unknown graph node: {node!r}")

    def _visit_sequence(self, node: Sequence) -> SequencePlan:
        if len(node.children) < 1:
            raise MalformedGraphError("A sequence needs at least one child")

        self.trace.append("sequence:push")
        entries = tuple(self.visit(child) for child in node.children)
        self.trace.append("sequence:pop")
        return SequencePlan(entries, node)

    def _visit_split(self, node: Split) -> SplitPlan:
        if len(node.branches) < 1:
            raise MalformedGraphError("A split needs at least one branch")

        self.trace.append("split:push")
        branches = tuple(self.visit(branch) for branch in node.branches)
        self.trace.append("split:boundary")
        return SplitPlan(branches, node)

    def _visit_task(self, node: Task) -> LaunchDirective:
        task_name = self._task_name(node)
        step_name = self._step_name(node.label or task_name)
        self.trace.append(f"task:{step_name}")
        return LaunchDirective(
            step_name=step_name,
            task_name=task_name,
            label=node.label,
            properties=dict(node.properties),
            arguments=tuple(node.arguments),
            node=node,
        )

    def _visit_label(self, node: Label) -> LaunchDirective:
        task = self._resolve(node.name)
        task_name = self._task_name(task)
        step_name = self._step_name(node.name)
        self.trace.append(f"label:{step_name}->{task_name}")
        return LaunchDirective(
            step_name=step_name,
            task_name=task_name,
            label=node.name,
            properties=dict(task.properties),
            arguments=tuple(task.arguments),
            node=node,
        )

    def _resolve(self, name: str) -> Task:
        if name in self._resolved:
            return self._resolved[name]

        state: dict[str, _Visit] = {}
        stack: list[str] = []
        pos: dict[str, int] = {}
        current = name

        while True:
            if state.get(current, _Visit.UNVISITED) == _Visit.VISITING:
                start = pos[current]
                raise CycleError(stack[start:] + [current])

            state[current] = _Visit.VISITING
            pos[current] = len(stack)
            stack.append(current)

            definition = self.definitions[current]
            if isinstance(definition, Task):
                break

            if definition.target not in self.definitions:
                raise MalformedGraphError(
                    f"Label '{definition.name}' references undefined target '{definition.target}'"
                )
            current = definition.target

        for visited in stack:
            self._resolved[visited] = definition
        return definition

    def _task_name(self, node: Task) -> str:
        if not isinstance(node.name, str) or len(node.name.strip()) < 1:
            raise MalformedGraphError("A task name can't be empty")
        return node.name.strip()

    def _step_name(self, name: str) -> str:
        suffix = self._suffixes.get(name, 0)
        self._suffixes[name] = suffix + 1
        return f"{name}_{suffix}"
