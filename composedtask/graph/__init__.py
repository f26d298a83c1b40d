from .plan import (
    ExecutionPlan,
    LaunchDirective,
    PlanEntry,
    SequencePlan,
    SplitPlan,
    compile_graph,
)
from .types import (
    CycleError,
    GraphError,
    GraphNode,
    Label,
    MalformedGraphError,
    Sequence,
    Split,
    Task,
)

__all__ = [
    "compile_graph",
    "ExecutionPlan",
    "LaunchDirective",
    "PlanEntry",
    "SequencePlan",
    "SplitPlan",
    "GraphNode",
    "Task",
    "Sequence",
    "Split",
    "Label",
    "GraphError",
    "MalformedGraphError",
    "CycleError",
]
