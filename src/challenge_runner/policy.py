from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


def _default_policy_path() -> Path:
    """Return bundled default policy TOML path.

    Example:
        ```python
        path = _default_policy_path()
        ```
    """
    return Path(__file__).with_name("default_policy.toml")


def _read_policy_toml(path: Path) -> dict[str, Any]:
    """Read policy TOML and return normalized policy dictionary.

    Example:
        ```python
        raw = _read_policy_toml(Path("/tmp/policy.toml"))
        ```
    """
    if not path.exists():
        return {
            "timeout_ms": 3000,
            "memory_limit_mb": 128,
            "max_stack_kb": 1024,
            "max_console_lines": 200,
            "timeout_message": "Execution timed out after {timeout_ms}ms",
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    policy_obj = raw.get("policy", raw)
    if not isinstance(policy_obj, dict):
        raise ValueError("Policy config must be a TOML table")
    return policy_obj


def _positive_int(value: Any, field_name: str) -> int:
    """Validate and normalize a positive integer policy field.

    Example:
        ```python
        timeout_ms = _positive_int(3000, "timeout_ms")
        ```
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{field_name}' must be an integer")
    if value <= 0:
        raise ValueError(f"'{field_name}' must be greater than zero")
    return value


_DEFAULT_POLICY_RAW = _read_policy_toml(_default_policy_path())
DEFAULT_TIMEOUT_MS = _positive_int(_DEFAULT_POLICY_RAW.get("timeout_ms", 3000), "timeout_ms")
DEFAULT_MEMORY_LIMIT_MB = _positive_int(
    _DEFAULT_POLICY_RAW.get("memory_limit_mb", 128), "memory_limit_mb"
)
DEFAULT_MAX_STACK_KB = _positive_int(_DEFAULT_POLICY_RAW.get("max_stack_kb", 1024), "max_stack_kb")
DEFAULT_MAX_CONSOLE_LINES = _positive_int(
    _DEFAULT_POLICY_RAW.get("max_console_lines", 200), "max_console_lines"
)
DEFAULT_TIMEOUT_MESSAGE = str(
    _DEFAULT_POLICY_RAW.get("timeout_message", "Execution timed out after {timeout_ms}ms")
)
GENERIC_ERROR_MESSAGE = "Unknown execution error"


@dataclass(slots=True)
class RunnerPolicy:
    """Execution limits for one candidate run.

    Example:
        ```python
        policy = RunnerPolicy(timeout_ms=3000, memory_limit_mb=64)
        ```
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    max_stack_kb: int = DEFAULT_MAX_STACK_KB
    max_console_lines: int = DEFAULT_MAX_CONSOLE_LINES
    timeout_message: str = DEFAULT_TIMEOUT_MESSAGE
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate numeric limits after dataclass initialization.

        Example:
            ```python
            RunnerPolicy(timeout_ms=500)
            ```
        """
        _positive_int(self.timeout_ms, "timeout_ms")
        _positive_int(self.memory_limit_mb, "memory_limit_mb")
        _positive_int(self.max_stack_kb, "max_stack_kb")
        _positive_int(self.max_console_lines, "max_console_lines")
        if not self.timeout_message.strip():
            raise ValueError("'timeout_message' must not be empty")

    @property
    def timeout_seconds(self) -> float:
        """Return the hard deadline in seconds.

        Example:
            ```python
            assert RunnerPolicy(timeout_ms=1500).timeout_seconds == 1.5
            ```
        """
        return self.timeout_ms / 1000

    @property
    def timeout_error(self) -> str:
        """Return the timeout message with `{timeout_ms}` filled in.

        Example:
            ```python
            assert RunnerPolicy(timeout_ms=500).timeout_error == "Execution timed out after 500ms"
            ```
        """
        return self.timeout_message.replace("{timeout_ms}", str(self.timeout_ms))

    @classmethod
    def from_file(cls, config_path: str) -> "RunnerPolicy":
        """Create a policy instance from a TOML file.

        Example:
            ```python
            policy = RunnerPolicy.from_file("/tmp/policy.toml")
            ```
        """
        raw = _read_policy_toml(Path(config_path))
        return cls(
            timeout_ms=_positive_int(raw.get("timeout_ms", DEFAULT_TIMEOUT_MS), "timeout_ms"),
            memory_limit_mb=_positive_int(
                raw.get("memory_limit_mb", DEFAULT_MEMORY_LIMIT_MB), "memory_limit_mb"
            ),
            max_stack_kb=_positive_int(raw.get("max_stack_kb", DEFAULT_MAX_STACK_KB), "max_stack_kb"),
            max_console_lines=_positive_int(
                raw.get("max_console_lines", DEFAULT_MAX_CONSOLE_LINES), "max_console_lines"
            ),
            timeout_message=str(raw.get("timeout_message", DEFAULT_TIMEOUT_MESSAGE)),
            config_path=config_path,
        )


class FailureKind(str, Enum):
    """Why a run produced an error instead of a test report."""

    CANDIDATE_ERROR = "candidate_error"
    INTERNAL_FAULT = "internal_fault"
    TIMEOUT = "timeout"
    SETUP_FAILURE = "setup_failure"


@dataclass(slots=True)
class ExecutionResult:
    """Normalized result returned by `execute` and `run_challenge`.

    Example:
        ```python
        result = ExecutionResult(passed=1, total=1, checks=[True])
        ```
    """

    passed: int = 0
    total: int = 0
    checks: list[bool] = field(default_factory=list)
    error: str | None = None
    failure: FailureKind | None = None
    console: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Return True when the test script produced a report.

        Example:
            ```python
            assert ExecutionResult(passed=0, total=2, checks=[False, False]).ok
            ```
        """
        return self.error is None

    @property
    def timed_out(self) -> bool:
        """Return True when the run was cut off by the deadline.

        Example:
            ```python
            assert not ExecutionResult().timed_out
            ```
        """
        return self.failure is FailureKind.TIMEOUT

    @classmethod
    def failed(
        cls,
        failure: FailureKind,
        error: str | None,
        console: list[str] | None = None,
    ) -> "ExecutionResult":
        """Build an error result with zeroed counters.

        Example:
            ```python
            result = ExecutionResult.failed(FailureKind.CANDIDATE_ERROR, "boom")
            ```
        """
        message = (error or "").strip() or GENERIC_ERROR_MESSAGE
        return cls(error=message, failure=failure, console=list(console or []))
