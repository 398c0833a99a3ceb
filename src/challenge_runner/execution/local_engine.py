from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from .types import ExecutionOutcome, ExecutionRequest

logger = logging.getLogger(__name__)

TIMED_OUT_RETURNCODE = 124


def _worker_path() -> Path:
    """Return the absolute path to the worker module file.

    Example:
        ```python
        path = _worker_path()
        ```
    """
    return Path(__file__).resolve().parents[1] / "worker.py"


def _worker_command(python_executable: str) -> list[str]:
    """Return the argv used to start one worker process.

    Example:
        ```python
        cmd = _worker_command(sys.executable)
        ```
    """
    # -I keeps the caller's working directory and PYTHON* env out of the worker.
    return [python_executable, "-I", str(_worker_path())]


class LocalEngine:
    """Execute each request in a fresh worker subprocess on this machine.

    Example:
        ```python
        engine = LocalEngine()
        outcome = await engine.execute(ExecutionRequest(payload=payload, timeout_seconds=3.0))
        ```
    """

    def __init__(
        self,
        *,
        python_executable: str | None = None,
        command: Sequence[str] | None = None,
    ) -> None:
        """Initialize the engine with the interpreter that hosts workers.

        Example:
            ```python
            engine = LocalEngine(python_executable="/usr/bin/python3")
            ```
        """
        if command is not None and python_executable is not None:
            raise ValueError("Provide either 'python_executable' or 'command', not both")
        if command is not None:
            cleaned = [part for part in command if part.strip()]
            if not cleaned:
                raise ValueError("LocalEngine requires a non-empty 'command'")
            self._command = cleaned
        else:
            self._command = _worker_command(python_executable or sys.executable)

    @property
    def command(self) -> list[str]:
        """Return a copy of the worker argv.

        Example:
            ```python
            argv = LocalEngine().command
            ```
        """
        return list(self._command)

    async def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Run one request in its own worker, killing it at the deadline.

        Example:
            ```python
            outcome = await engine.execute(ExecutionRequest(payload=payload, timeout_seconds=3.0))
            ```
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.warning("Failed to start worker %s: %s", self._command[0], exc)
            return ExecutionOutcome(
                stdout="",
                stderr="",
                returncode=-1,
                timed_out=False,
                error=f"Failed to start worker: {exc}",
            )

        payload = json.dumps(request.payload).encode("utf-8")
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(payload),
                timeout=request.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.info("Worker %s exceeded %.3fs, terminating", proc.pid, request.timeout_seconds)
            return ExecutionOutcome(
                stdout="",
                stderr="",
                returncode=TIMED_OUT_RETURNCODE,
                timed_out=True,
            )
        finally:
            await _reap(proc)

        return ExecutionOutcome(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            returncode=proc.returncode if proc.returncode is not None else -1,
            timed_out=False,
        )


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill the worker if it is still alive and wait for it to exit.

    Example:
        ```python
        await _reap(proc)
        ```
    """
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
    await proc.wait()
