import asyncio

from challenge_runner import FailureKind, LocalEngine, execute, run_challenge as raw_run_challenge

ENGINE = LocalEngine()

ADD_CODE = "function add(a,b){return a+b}"
ADD_TEST = "return {passed: add(1,2)===3?1:0, total:1, checks:[add(1,2)===3]}"


def run_challenge(*args, **kwargs):
    kwargs.setdefault("engine", ENGINE)
    return raw_run_challenge(*args, **kwargs)


def test_passing_script_returns_report() -> None:
    result = run_challenge(ADD_CODE, ADD_TEST)

    assert result.ok
    assert (result.passed, result.total, result.checks) == (1, 1, [True])
    assert result.error is None
    assert result.failure is None


def test_failing_checks_are_still_a_report() -> None:
    code = "function add(a, b) { return a - b }"
    test_script = """
const checks = [add(1, 2) === 3, add(2, 2) === 0, add(0, 0) === 0];
return {passed: checks.filter(Boolean).length, total: checks.length, checks};
"""
    result = run_challenge(code, test_script)

    assert result.ok
    assert result.passed == 2
    assert result.total == 3
    assert result.checks == [False, True, True]


def test_candidate_throw_is_reported_with_message() -> None:
    result = run_challenge("throw new Error('boom')", ADD_TEST)

    assert result.passed == 0
    assert result.total == 0
    assert result.checks == []
    assert result.error == "boom"
    assert result.failure is FailureKind.CANDIDATE_ERROR


def test_test_script_throw_is_reported() -> None:
    test_script = """
if (typeof debounce !== "function") {
  throw new Error("Define a debounce function first");
}
return {passed: 1, total: 1, checks: [true]};
"""
    result = run_challenge("const x = 1;", test_script)

    assert result.error == "Define a debounce function first"
    assert result.failure is FailureKind.CANDIDATE_ERROR


def test_non_error_throw_is_coerced_to_string() -> None:
    result = run_challenge('throw "nope"', ADD_TEST)

    assert result.error == "nope"
    assert result.failure is FailureKind.CANDIDATE_ERROR


def test_syntax_error_is_candidate_error() -> None:
    result = run_challenge("function broken( {", ADD_TEST)

    assert not result.ok
    assert result.error
    assert result.failure is FailureKind.CANDIDATE_ERROR
    assert result.total == 0


def test_candidate_declarations_are_visible_to_test_script() -> None:
    code = """
const base = 10;
let calls = 0;
function offset(n) {
  calls += 1;
  return base + n;
}
"""
    test_script = """
const checks = [offset(1) === 11, offset(5) === 15, calls === 2];
return {passed: checks.filter(Boolean).length, total: checks.length, checks};
"""
    result = run_challenge(code, test_script)

    assert (result.passed, result.total) == (3, 3)


def test_code_runs_in_strict_mode() -> None:
    test_script = """
let threw = false;
try {
  undeclaredName = 1;
} catch (error) {
  threw = error instanceof ReferenceError;
}
return {passed: threw ? 1 : 0, total: 1, checks: [threw]};
"""
    result = run_challenge("", test_script)

    assert result.checks == [True]


def test_test_script_can_await_candidate_timers() -> None:
    code = """
function later(value, ms) {
  return new Promise((resolve) => setTimeout(() => resolve(value), ms));
}
"""
    test_script = """
const value = await later(42, 30);
return {passed: value === 42 ? 1 : 0, total: 1, checks: [value === 42]};
"""
    result = run_challenge(code, test_script)

    assert result.ok
    assert result.checks == [True]


def test_console_output_is_captured() -> None:
    code = "console.log('hello', {a: 1}); console.warn('careful');"
    result = run_challenge(code, "return {passed: 0, total: 0, checks: []}")

    assert result.ok
    assert result.console == ['hello {"a":1}', "[warn] careful"]


def test_console_is_kept_on_candidate_error() -> None:
    result = run_challenge("console.log('before'); throw new Error('after');", ADD_TEST)

    assert result.error == "after"
    assert result.console == ["before"]


def test_malformed_result_is_internal_fault() -> None:
    result = run_challenge("", "return 42")

    assert result.failure is FailureKind.INTERNAL_FAULT
    assert "passed" in (result.error or "")
    assert result.total == 0


def test_missing_return_is_internal_fault() -> None:
    result = run_challenge("", "const checks = [true];")

    assert result.failure is FailureKind.INTERNAL_FAULT


def test_passed_above_total_is_rejected() -> None:
    result = run_challenge("", "return {passed: 3, total: 1, checks: [true]}")

    assert result.failure is FailureKind.INTERNAL_FAULT
    assert result.error == "Test script reported 3 passed out of 1"


def test_identical_inputs_give_identical_results() -> None:
    first = run_challenge(ADD_CODE, ADD_TEST)
    second = run_challenge(ADD_CODE, ADD_TEST)

    assert first == second


def test_concurrent_runs_do_not_share_state() -> None:
    shared_test = """
globalThis.seen = (globalThis.seen || 0) + 1;
const value = await compute();
return {passed: value, total: value, checks: Array(value).fill(globalThis.seen === 1)};
"""
    slow = "async function compute() { await new Promise((r) => setTimeout(r, 100)); return 2; }"
    fast = "async function compute() { return 5; }"

    async def _both():
        return await asyncio.gather(
            execute(slow, shared_test, engine=ENGINE),
            execute(fast, shared_test, engine=ENGINE),
        )

    slow_result, fast_result = asyncio.run(_both())

    assert (slow_result.passed, slow_result.total) == (2, 2)
    assert (fast_result.passed, fast_result.total) == (5, 5)
    assert all(slow_result.checks)
    assert all(fast_result.checks)
