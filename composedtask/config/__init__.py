from .loader import build_definition, build_graph, load_config
from .types import (
    ComposedTaskConfig,
    ComposedTaskDefinition,
    ConfigError,
    SplitPoolConfig,
    UnsupportedConfigFormatError,
)

__all__ = [
    "load_config",
    "build_definition",
    "build_graph",
    "ComposedTaskConfig",
    "ComposedTaskDefinition",
    "SplitPoolConfig",
    "ConfigError",
    "UnsupportedConfigFormatError",
]
