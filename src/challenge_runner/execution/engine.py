from __future__ import annotations

from typing import Protocol

from .types import ExecutionOutcome, ExecutionRequest


class ExecutionEngine(Protocol):
    async def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Execute one request and return normalized execution outcome.

        Example:
            ```python
            outcome = await engine.execute(ExecutionRequest(payload={"code": ""}, timeout_seconds=3.0))
            ```
        """
        ...
