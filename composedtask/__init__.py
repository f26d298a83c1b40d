from composedtask.config import ComposedTaskConfig, load_config
from composedtask.executor import ComposedTaskRunner, RunResult
from composedtask.graph import Label, Sequence, Split, Task, compile_graph

__all__ = [
    "ComposedTaskConfig",
    "ComposedTaskRunner",
    "RunResult",
    "load_config",
    "compile_graph",
    "Task",
    "Sequence",
    "Split",
    "Label",
]
