from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from .execution.engine import ExecutionEngine
from .execution.local_engine import LocalEngine
from .execution.types import ExecutionOutcome, ExecutionRequest
from .policy import ExecutionResult, FailureKind, RunnerPolicy

logger = logging.getLogger(__name__)

_FAILURE_KINDS = {kind.value: kind for kind in FailureKind}


def _resolve_policy(policy: RunnerPolicy | None, policy_file: str | None) -> RunnerPolicy:
    """Resolve the effective policy object for a run.

    Example:
        ```python
        policy = _resolve_policy(None, "/tmp/policy.toml")
        ```
    """
    if policy is not None and policy_file is not None:
        raise ValueError("Provide either 'policy' or 'policy_file', not both")
    if policy is None and policy_file is not None:
        return RunnerPolicy.from_file(policy_file)
    if policy is None:
        return RunnerPolicy()
    if policy.config_path is not None:
        return RunnerPolicy.from_file(policy.config_path)
    return policy


def _build_payload(code: str, test_script: str, policy: RunnerPolicy) -> dict[str, Any]:
    """Build the worker payload from candidate code, test script, and policy.

    Example:
        ```python
        payload = _build_payload("function f() {}", "return {passed: 0, total: 0, checks: []}", RunnerPolicy())
        ```
    """
    return {
        "code": code,
        "test_script": test_script,
        "policy": {
            "timeout_ms": policy.timeout_ms,
            "memory_limit_mb": policy.memory_limit_mb,
            "max_stack_kb": policy.max_stack_kb,
            "max_console_lines": policy.max_console_lines,
        },
    }


def _count(value: Any) -> int | None:
    """Return value as a non-negative count, or None if it is not one.

    Example:
        ```python
        assert _count(3) == 3 and _count(-1) is None
        ```
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        return None
    return value


def _report_from(result: Any, console: list[str]) -> ExecutionResult:
    """Validate the structure returned by a test script.

    Example:
        ```python
        report = _report_from({"passed": 1, "total": 1, "checks": [True]}, [])
        ```
    """
    if not isinstance(result, dict):
        return ExecutionResult.failed(
            FailureKind.INTERNAL_FAULT,
            "Test script must return an object with 'passed', 'total' and 'checks'",
            console,
        )
    passed = _count(result.get("passed"))
    total = _count(result.get("total"))
    if passed is None or total is None:
        return ExecutionResult.failed(
            FailureKind.INTERNAL_FAULT,
            "Test script returned non-integer 'passed' or 'total'",
            console,
        )
    if passed > total:
        return ExecutionResult.failed(
            FailureKind.INTERNAL_FAULT,
            f"Test script reported {passed} passed out of {total}",
            console,
        )
    raw_checks = result.get("checks")
    checks = [bool(item) for item in raw_checks] if isinstance(raw_checks, list) else []
    return ExecutionResult(passed=passed, total=total, checks=checks, console=console)


def _to_result(outcome: ExecutionOutcome, policy: RunnerPolicy) -> ExecutionResult:
    """Normalize a raw engine outcome into an `ExecutionResult`.

    Example:
        ```python
        result = _to_result(ExecutionOutcome(stdout="{}", stderr="", returncode=0, timed_out=False), RunnerPolicy())
        ```
    """
    if outcome.timed_out:
        return ExecutionResult.failed(FailureKind.TIMEOUT, policy.timeout_error)

    if outcome.error and not outcome.stdout.strip():
        return ExecutionResult.failed(FailureKind.SETUP_FAILURE, outcome.error)

    raw = outcome.stdout.strip()
    if not raw:
        message = f"Worker exited with code {outcome.returncode} without a response"
        stderr_lines = outcome.stderr.strip().splitlines()
        if stderr_lines:
            message = f"{message}: {stderr_lines[-1]}"
        return ExecutionResult.failed(FailureKind.INTERNAL_FAULT, message)

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return ExecutionResult.failed(FailureKind.INTERNAL_FAULT, "Worker returned invalid JSON")
    if not isinstance(parsed, dict):
        return ExecutionResult.failed(FailureKind.INTERNAL_FAULT, "Worker returned invalid JSON")

    console = [str(line) for line in parsed.get("console") or []]
    if parsed.get("ok"):
        return _report_from(parsed.get("result"), console)

    kind = _FAILURE_KINDS.get(str(parsed.get("kind")), FailureKind.INTERNAL_FAULT)
    error = parsed.get("error")
    return ExecutionResult.failed(kind, None if error is None else str(error), console)


async def execute(
    code: str,
    test_script: str,
    *,
    engine: ExecutionEngine | None = None,
    policy: RunnerPolicy | None = None,
    policy_file: str | None = None,
) -> ExecutionResult:
    """Run candidate code followed by its test script in an isolated worker.

    Always settles within the policy deadline and never raises for failures
    of the candidate program, the worker, or the deadline; those are reported
    through `ExecutionResult.error` and `ExecutionResult.failure`.

    Example:
        ```python
        from challenge_runner import execute
        result = await execute(
            "function add(a, b) { return a + b }",
            "return {passed: add(1, 2) === 3 ? 1 : 0, total: 1, checks: [add(1, 2) === 3]}",
        )
        ```
    """
    resolved_policy = _resolve_policy(policy, policy_file)
    active_engine: ExecutionEngine = engine if engine is not None else LocalEngine()
    payload = _build_payload(code, test_script, resolved_policy)

    logger.debug("Starting run with %s (%dms budget)", type(active_engine).__name__, resolved_policy.timeout_ms)
    try:
        outcome = await active_engine.execute(
            ExecutionRequest(payload=payload, timeout_seconds=resolved_policy.timeout_seconds)
        )
    except Exception as exc:
        logger.warning("Execution engine failed before producing an outcome: %s", exc)
        return ExecutionResult.failed(FailureKind.SETUP_FAILURE, str(exc))

    result = _to_result(outcome, resolved_policy)
    if result.ok:
        logger.debug("Run finished: %d/%d checks passed", result.passed, result.total)
    else:
        logger.info("Run failed (%s): %s", result.failure.value if result.failure else "unknown", result.error)
    return result


def run_challenge(
    code: str,
    test_script: str,
    *,
    engine: ExecutionEngine | None = None,
    policy: RunnerPolicy | None = None,
    policy_file: str | None = None,
) -> ExecutionResult:
    """Synchronous wrapper around `execute` for callers without an event loop.

    Example:
        ```python
        from challenge_runner import run_challenge
        result = run_challenge("throw new Error('boom')", "return {passed: 0, total: 0, checks: []}")
        assert result.error == "boom"
        ```
    """
    return asyncio.run(
        execute(code, test_script, engine=engine, policy=policy, policy_file=policy_file)
    )
