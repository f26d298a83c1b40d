from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


class GraphError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class MalformedGraphError(GraphError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class CycleError(MalformedGraphError):
    def __init__(self, cycle: list[str]):
        super().__init__("Cycle detected: " + "-> ".join(cycle))
        self.cycle = cycle


@dataclass(frozen=True)
class Task:
    name: str
    label: str | None = None
    properties: dict[str, str] = field(default_factory=dict)
    arguments: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", dict(self.properties))
        object.__setattr__(self, "arguments", tuple(self.arguments))


@dataclass(frozen=True)
class Sequence:
    children: tuple[GraphNode, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", tuple(self.children))


@dataclass(frozen=True)
class Split:
    # Branches are independent; their order carries no execution meaning.
    branches: tuple[GraphNode, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "branches", tuple(self.branches))


@dataclass(frozen=True)
class Label:
    """A named step that runs the task labelled ``target``.

    ``target`` names either a ``Task`` whose ``label`` matches, or another
    ``Label`` whose ``name`` matches.
    """

    name: str
    target: str


GraphNode = Union[Task, Sequence, Split, Label]
