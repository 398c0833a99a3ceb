from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_SOLVED_COUNT = "0 solved"
MISSING_REFERENCE_SOLUTION = "No reference solution yet"


@dataclass(frozen=True, slots=True)
class Challenge:
    """A hand-written coding challenge with its starter code and test script.

    Example:
        ```python
        challenge = get_challenge("debounce")
        result = run_challenge(challenge.reference_solution, challenge.test_script)
        ```
    """

    slug: str
    title: str
    level: str
    category: str
    duration: str
    solved_count: str
    description: tuple[str, ...]
    example: str
    starter_code: str
    test_script: str
    reference_solution: str = MISSING_REFERENCE_SOLUTION
    id: int | None = field(default=None, compare=False)


_DEBOUNCE_TEST = """
const checks = [];
if (typeof debounce !== "function") {
  throw new Error("Define a debounce function first");
}

let count = 0;
const debounced = debounce(() => {
  count += 1;
}, 40);

debounced();
debounced();
debounced();
await new Promise((resolve) => setTimeout(resolve, 80));
checks.push(count === 1);

const ctx = { total: 0 };
const wrapped = debounce(function (n) {
  this.total += n;
}, 30);
wrapped.call(ctx, 1);
wrapped.call(ctx, 3);
await new Promise((resolve) => setTimeout(resolve, 60));
checks.push(ctx.total === 3);

return {
  passed: checks.filter(Boolean).length,
  total: checks.length,
  checks,
};
"""

_EMITTER_TEST = """
if (typeof createEmitter !== "function") {
  throw new Error("Define a createEmitter function first");
}

const emitter = createEmitter();
const logs = [];
const fn = (n) => logs.push(n);

emitter.on("tick", fn);
emitter.emit("tick", 1);
emitter.off("tick", fn);
emitter.emit("tick", 2);

const checks = [
  Array.isArray(logs),
  logs.length === 1,
  logs[0] === 1,
];

return {
  passed: checks.filter(Boolean).length,
  total: checks.length,
  checks,
};
"""

_THROTTLE_TEST = """
if (typeof throttle !== "function") {
  throw new Error("Define a throttle function first");
}

let count = 0;
const fn = throttle(() => {
  count += 1;
}, 50);

fn();
fn();
await new Promise((resolve) => setTimeout(resolve, 10));
fn();
await new Promise((resolve) => setTimeout(resolve, 70));
fn();

const checks = [count === 2];

return {
  passed: checks.filter(Boolean).length,
  total: checks.length,
  checks,
};
"""

CHALLENGES: tuple[Challenge, ...] = (
    Challenge(
        slug="debounce",
        title="Debounce",
        level="Medium",
        category="JavaScript",
        duration="15 mins",
        solved_count="16.5k solved",
        description=(
            "Debouncing limits how often a function runs. When it is triggered repeatedly, "
            "only the last call runs, once the calls have stopped for a while.",
            "Implement debounce(fn, wait) returning a new function. Only the last of a burst "
            "of calls takes effect, and it keeps its `this` and arguments.",
        ),
        example="""let i = 0;
function increment() {
  i += 1;
}

const debouncedIncrement = debounce(increment, 100);
debouncedIncrement();
debouncedIncrement();

// after 100ms, i === 1""",
        starter_code="""function debounce(fn, wait) {
  // TODO: implement debounce
}
""",
        test_script=_DEBOUNCE_TEST,
        reference_solution="""function debounce(fn, wait) {
  let timer = null;
  return function (...args) {
    clearTimeout(timer);
    timer = setTimeout(() => {
      timer = null;
      fn.apply(this, args);
    }, wait);
  };
}
""",
    ),
    Challenge(
        slug="event-emitter",
        title="Event Emitter",
        level="Medium",
        category="TypeScript",
        duration="20 mins",
        solved_count="9.3k solved",
        description=(
            "Build a minimal event system supporting on, off and emit.",
            "Listeners run in registration order. After off removes a callback it is never "
            "called again.",
        ),
        example="""const emitter = createEmitter();
const logs = [];
const fn = (n) => logs.push(n);

emitter.on('tick', fn);
emitter.emit('tick', 1);
emitter.off('tick', fn);
emitter.emit('tick', 2);

// logs => [1]""",
        starter_code="""function createEmitter() {
  // TODO: implement on / off / emit
  return {
    on() {},
    off() {},
    emit() {},
  };
}
""",
        test_script=_EMITTER_TEST,
        reference_solution="""function createEmitter() {
  const listeners = new Map();
  return {
    on(name, fn) {
      if (!listeners.has(name)) listeners.set(name, []);
      listeners.get(name).push(fn);
    },
    off(name, fn) {
      const list = listeners.get(name) || [];
      const index = list.indexOf(fn);
      if (index !== -1) list.splice(index, 1);
    },
    emit(name, ...args) {
      for (const fn of (listeners.get(name) || []).slice()) fn(...args);
    },
  };
}
""",
    ),
    Challenge(
        slug="throttle",
        title="Throttle",
        level="Easy",
        category="JavaScript",
        duration="15 mins",
        solved_count="11.2k solved",
        description=(
            "Throttling runs a function at most once per time window, which suits "
            "high-frequency events such as scrolling and dragging.",
            "Implement throttle(fn, wait) and pass arguments through.",
        ),
        example="""let called = 0;
const fn = throttle(() => called++, 100);

fn(); // called = 1
fn(); // ignored
// 100ms later
fn(); // called = 2""",
        starter_code="""function throttle(fn, wait) {
  // TODO: implement throttle
}
""",
        test_script=_THROTTLE_TEST,
        reference_solution="""function throttle(fn, wait) {
  let last = -Infinity;
  return function (...args) {
    const now = Date.now();
    if (now - last >= wait) {
      last = now;
      fn.apply(this, args);
    }
  };
}
""",
    ),
)


def get_challenge(slug: str) -> Challenge:
    """Return the bundled challenge with the given slug.

    Example:
        ```python
        challenge = get_challenge("throttle")
        ```
    """
    for challenge in CHALLENGES:
        if challenge.slug == slug:
            return challenge
    raise KeyError(f"Unknown challenge '{slug}'")


def _paragraphs(text: str) -> tuple[str, ...]:
    """Split a stored description into non-empty paragraphs.

    Example:
        ```python
        assert _paragraphs("a\\n\\nb") == ("a", "b")
        ```
    """
    return tuple(part.strip() for part in text.split("\n\n") if part.strip())


def challenge_from_row(row: dict[str, Any]) -> Challenge:
    """Normalize a raw question row from the content database.

    Example:
        ```python
        challenge = challenge_from_row({"slug": "debounce", "title": "Debounce", ...})
        ```
    """
    missing = [
        name
        for name in ("slug", "title", "level", "category", "duration", "starter_code", "test_script")
        if not isinstance(row.get(name), str)
    ]
    if missing:
        raise ValueError(f"Question row is missing text fields: {', '.join(missing)}")
    raw_id = row.get("id")
    solved_count = row.get("solved_count")
    return Challenge(
        id=raw_id if isinstance(raw_id, int) and not isinstance(raw_id, bool) else None,
        slug=row["slug"],
        title=row["title"],
        level=row["level"],
        category=row["category"],
        duration=row["duration"],
        solved_count=DEFAULT_SOLVED_COUNT if solved_count is None else solved_count,
        description=_paragraphs(str(row.get("description") or "")),
        example=str(row.get("example") or ""),
        starter_code=row["starter_code"],
        test_script=row["test_script"],
        reference_solution=row.get("reference_solution") or MISSING_REFERENCE_SOLUTION,
    )
