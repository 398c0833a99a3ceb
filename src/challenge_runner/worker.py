"""Worker process that evaluates one candidate program inside QuickJS.

Reads a single JSON payload from stdin and writes a single JSON document to
stdout. This file is started by path with ``python -I`` and must only import
the standard library and ``quickjs``.
"""

from __future__ import annotations

import json
import math
import sys
import time
from typing import Any

import quickjs

_resource: Any
try:
    import resource as _resource_module  # POSIX only
    _resource = _resource_module
except ImportError:  # pragma: no cover - platform specific
    _resource = None

CANDIDATE_ERROR = "candidate_error"
INTERNAL_FAULT = "internal_fault"
STALLED_MESSAGE = "Program stalled: it awaits a promise that can never settle"

_PRELUDE = r"""
(function (global) {
  "use strict";

  const timers = new Map();
  const lines = [];
  let nextTimerId = 1;
  let maxLines = 200;
  let truncated = false;
  let settled = false;

  function describe(error) {
    if (error instanceof Error) {
      return error.message || String(error);
    }
    if (error !== null && typeof error === "object" && typeof error.message === "string" && error.message) {
      return error.message;
    }
    try {
      return String(error);
    } catch (inner) {
      return "";
    }
  }

  function format(value) {
    if (typeof value === "string") {
      return value;
    }
    try {
      const text = JSON.stringify(value);
      return text === undefined ? String(value) : text;
    } catch (error) {
      return String(value);
    }
  }

  function record(prefix) {
    return (...values) => {
      if (settled) {
        return;
      }
      if (lines.length >= maxLines) {
        truncated = true;
        return;
      }
      lines.push(prefix + values.map(format).join(" "));
    };
  }

  function schedule(callback, delay, args, repeat) {
    if (typeof callback !== "function") {
      throw new TypeError("Timer callback must be a function");
    }
    const wait = Math.max(0, Number(delay) || 0);
    const id = nextTimerId++;
    timers.set(id, { callback, args, wait, repeat, due: Date.now() + wait });
    return id;
  }

  function cancel(id) {
    timers.delete(id);
  }

  global.setTimeout = (callback, delay, ...args) => schedule(callback, delay, args, false);
  global.setInterval = (callback, delay, ...args) => schedule(callback, delay, args, true);
  global.clearTimeout = cancel;
  global.clearInterval = cancel;
  global.queueMicrotask = (callback) => {
    Promise.resolve().then(callback);
  };
  global.console = {
    log: record(""),
    info: record(""),
    debug: record(""),
    warn: record("[warn] "),
    error: record("[error] "),
  };

  const runtime = {
    outcome: null,

    configure(limit) {
      maxLines = limit;
    },

    settle(outcome) {
      if (runtime.outcome === null) {
        runtime.outcome = JSON.stringify(outcome);
        settled = true;
      }
    },

    fail(kind, error) {
      runtime.settle({ ok: false, kind, error: describe(error) });
    },

    succeed(result) {
      let outcome;
      try {
        outcome = { ok: true, result: result === undefined ? null : JSON.parse(JSON.stringify(result)) };
      } catch (error) {
        runtime.fail("internal_fault", "Test script result is not serializable: " + describe(error));
        return;
      }
      runtime.settle(outcome);
    },

    launch(code, testScript) {
      let program;
      try {
        program = new Function('"use strict"; return (async () => {\n' + code + "\n" + testScript + "\n})();");
      } catch (error) {
        runtime.fail("candidate_error", error);
        return;
      }
      let pending;
      try {
        pending = program();
      } catch (error) {
        runtime.fail("candidate_error", error);
        return;
      }
      Promise.resolve(pending).then(
        (result) => runtime.succeed(result),
        (error) => runtime.fail("candidate_error", error),
      );
    },

    nextDelay() {
      let soonest = Infinity;
      for (const timer of timers.values()) {
        soonest = Math.min(soonest, timer.due);
      }
      return soonest === Infinity ? -1 : Math.max(0, soonest - Date.now());
    },

    runNextTimer() {
      let nextId = null;
      let next = null;
      for (const [id, timer] of timers) {
        if (next === null || timer.due < next.due) {
          nextId = id;
          next = timer;
        }
      }
      if (next === null || next.due > Date.now()) {
        return false;
      }
      if (next.repeat) {
        next.due = Date.now() + Math.max(next.wait, 1);
      } else {
        timers.delete(nextId);
      }
      try {
        next.callback.apply(undefined, next.args);
      } catch (error) {
        runtime.fail("internal_fault", error);
      }
      return true;
    },

    consoleLines() {
      const out = lines.slice();
      if (truncated) {
        out.push("[console output truncated]");
      }
      return JSON.stringify(out);
    },
  };

  Object.defineProperty(global, "__runtime", { value: runtime });
})(globalThis);
"""


def _set_limits(cpu_seconds: int) -> list[str]:
    """Cap worker CPU time so an orphaned worker cannot spin forever.

    Example:
        ```python
        errors = _set_limits(cpu_seconds=5)
        ```
    """
    errors: list[str] = []
    if _resource is None:
        errors.append("RLIMIT limits unavailable on this platform")
        return errors

    try:
        _, current_hard = _resource.getrlimit(_resource.RLIMIT_CPU)
        target_hard = cpu_seconds + 1
        if current_hard not in (-1, _resource.RLIM_INFINITY):
            target_hard = min(target_hard, current_hard)
        target_soft = min(cpu_seconds, target_hard)
        _resource.setrlimit(_resource.RLIMIT_CPU, (target_soft, target_hard))
    except (ValueError, OSError) as exc:
        errors.append(f"RLIMIT_CPU not applied: {exc}")

    return errors


def _launch_source(code: str, test_script: str) -> str:
    """Return the JS statement that starts the candidate program.

    Example:
        ```python
        source = _launch_source("function f() {}", "return {passed: 0, total: 0, checks: []}")
        ```
    """
    # JSON string literals are valid JS string literals.
    return f"__runtime.launch({json.dumps(code)}, {json.dumps(test_script)});"


def _drain_jobs(ctx: quickjs.Context) -> None:
    """Run every queued promise job.

    Example:
        ```python
        _drain_jobs(ctx)
        ```
    """
    while ctx.execute_pending_job():
        pass


def _drive(ctx: quickjs.Context) -> dict[str, Any]:
    """Run the event loop until the program settles or stalls.

    Example:
        ```python
        outcome = _drive(ctx)
        ```
    """
    while True:
        _drain_jobs(ctx)
        raw_outcome = ctx.eval("__runtime.outcome")
        if raw_outcome is not None:
            return json.loads(raw_outcome)
        delay_ms = ctx.eval("__runtime.nextDelay()")
        if delay_ms < 0:
            return {"ok": False, "kind": INTERNAL_FAULT, "error": STALLED_MESSAGE}
        if delay_ms > 0:
            time.sleep(delay_ms / 1000)
        ctx.eval("__runtime.runNextTimer()")


def _console_lines(ctx: quickjs.Context | None) -> list[str]:
    """Return the console lines recorded so far, if the context is usable.

    Example:
        ```python
        lines = _console_lines(ctx)
        ```
    """
    if ctx is None:
        return []
    try:
        return json.loads(ctx.eval("__runtime.consoleLines()"))
    except quickjs.JSException:
        return []


def run_program(code: str, test_script: str, policy: dict[str, Any]) -> dict[str, Any]:
    """Evaluate candidate code and test script in a fresh QuickJS context.

    Example:
        ```python
        response = run_program("function add(a, b) { return a + b }", "return {passed: 1, total: 1, checks: [true]}", {})
        ```
    """
    memory_limit_mb = int(policy.get("memory_limit_mb", 128))
    max_stack_kb = int(policy.get("max_stack_kb", 1024))
    max_console_lines = int(policy.get("max_console_lines", 200))

    ctx: quickjs.Context | None = None
    try:
        ctx = quickjs.Context()
        ctx.set_memory_limit(memory_limit_mb * 1024 * 1024)
        ctx.set_max_stack_size(max_stack_kb * 1024)
        ctx.eval(_PRELUDE)
        ctx.eval(f"__runtime.configure({max_console_lines});")
        ctx.eval(_launch_source(code, test_script))
        outcome = _drive(ctx)
    except quickjs.JSException as exc:
        outcome = {"ok": False, "kind": INTERNAL_FAULT, "error": str(exc)}
    except MemoryError:
        outcome = {"ok": False, "kind": INTERNAL_FAULT, "error": "Memory limit exceeded"}

    outcome["console"] = _console_lines(ctx)
    return outcome


def main() -> int:
    """Read one payload from stdin, run it, and write the response to stdout.

    Example:
        ```python
        exit_code = main()
        ```
    """
    try:
        req = json.loads(sys.stdin.read() or "{}")
        code = str(req.get("code", ""))
        test_script = str(req.get("test_script", ""))
        policy = req.get("policy", {}) or {}

        timeout_ms = int(policy.get("timeout_ms", 3000))
        _set_limits(cpu_seconds=math.ceil(timeout_ms / 1000) + 1)

        resp = run_program(code, test_script, policy)
    except Exception as e:
        # Fallback for unexpected worker errors (e.g. bad payload, engine init failures)
        resp = {"ok": False, "kind": INTERNAL_FAULT, "error": str(e), "console": []}

    sys.stdout.write(json.dumps(resp, default=str))
    sys.stdout.flush()
    return 0 if resp.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())
