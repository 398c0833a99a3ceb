from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class ExecutionRequest:
    """Normalized request sent to an execution engine.

    Example:
        ```python
        req = ExecutionRequest(payload={"code": "", "test_script": "return {}"}, timeout_seconds=3.0)
        ```
    """

    payload: dict[str, Any]
    timeout_seconds: float


@dataclass(slots=True)
class ExecutionOutcome:
    """Normalized response returned by an execution engine.

    Example:
        ```python
        out = ExecutionOutcome(stdout="{}", stderr="", returncode=0, timed_out=False)
        ```
    """

    stdout: str
    stderr: str
    returncode: int
    timed_out: bool
    error: str | None = None
