from .engine import ExecutionEngine
from .local_engine import LocalEngine
from .types import ExecutionOutcome, ExecutionRequest

__all__ = [
    "ExecutionEngine",
    "ExecutionOutcome",
    "ExecutionRequest",
    "LocalEngine",
]
