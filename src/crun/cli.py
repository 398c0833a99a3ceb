from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from rich_argparse import RawTextRichHelpFormatter
from challenge_runner import (
    CHALLENGES,
    ExecutionResult,
    LocalEngine,
    RunnerPolicy,
    execute,
    get_challenge,
)

_CONSOLE = Console(no_color=False)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m crun")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)

    def print_help(self, file: Any | None = None) -> None:
        """Render help text to the target stream.

        Example:
            ```python
            parser.print_help()
            ```
        """
        super().print_help(file=file)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for running interview challenges.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m crun",
        description=(
            "challenge-runner CLI\n"
            "Run candidate JavaScript against a test script in an isolated worker.\n"
            "Every run is cut off after the policy timeout (3000ms by default)."
        ),
        epilog=(
            "Quick Examples:\n"
            "  python -m crun list\n"
            "  python -m crun show debounce\n"
            "  python -m crun run --challenge debounce --code solution.js\n"
            "  python -m crun run --code solution.js --test checks.js --timeout-ms 1500\n"
            "  python -m crun check"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log runner and worker lifecycle events.",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    sub.add_parser(
        "list",
        help="List bundled challenges.",
        description="Show bundled challenges with their level, category, and duration.",
        formatter_class=_HELP_FORMATTER,
    )

    show_cmd = sub.add_parser(
        "show",
        help="Show one challenge with its starter code.",
        description="Print the description, example, and starter code of a challenge.",
        formatter_class=_HELP_FORMATTER,
    )
    show_cmd.add_argument("slug")

    run_cmd = sub.add_parser(
        "run",
        help="Run a solution against a challenge or a test script file.",
        description=(
            "Run candidate code followed by a test script.\n"
            "The test script must return {passed, total, checks}."
        ),
        epilog=(
            "Examples:\n"
            "  python -m crun run --challenge throttle --code throttle.js\n"
            "  python -m crun run --code add.js --test add_checks.js"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("--code", required=True, help="Path to the candidate source file.")
    target = run_cmd.add_mutually_exclusive_group(required=True)
    target.add_argument("--challenge", help="Slug of a bundled challenge whose test script to use.")
    target.add_argument("--test", help="Path to a test script file.")
    _add_policy_arguments(run_cmd)

    check_cmd = sub.add_parser(
        "check",
        help="Run bundled reference solutions against their test scripts.",
        description="Verify that each bundled reference solution passes its own test script.",
        formatter_class=_HELP_FORMATTER,
    )
    check_cmd.add_argument("slugs", nargs="*", help="Challenges to check (default: all).")
    _add_policy_arguments(check_cmd)

    return parser


def _add_policy_arguments(parser: argparse.ArgumentParser) -> None:
    """Attach policy and worker override flags to a subcommand parser.

    Example:
        ```python
        _add_policy_arguments(run_cmd)
        ```
    """
    parser.add_argument("--policy-file", help="TOML policy file ([policy] table).")
    parser.add_argument(
        "--timeout-ms",
        type=int,
        help="Hard deadline per run in milliseconds (default: 3000).",
    )
    parser.add_argument(
        "--python",
        help="Interpreter that runs the worker (default: the current one).",
    )


def build_engine(args: argparse.Namespace) -> LocalEngine:
    """Create the execution engine used by run and check commands.

    Example:
        ```python
        engine = build_engine(args)
        ```
    """
    return LocalEngine(python_executable=args.python)


def build_policy(args: argparse.Namespace) -> RunnerPolicy:
    """Create the run policy from --policy-file and --timeout-ms.

    Example:
        ```python
        policy = build_policy(args)
        ```
    """
    policy = RunnerPolicy.from_file(args.policy_file) if args.policy_file else RunnerPolicy()
    if args.timeout_ms is not None:
        policy = dataclasses.replace(policy, timeout_ms=args.timeout_ms)
    return dataclasses.replace(policy, config_path=None)


def _configure_logging(verbose: bool) -> None:
    """Route library logs through Rich when --verbose is set.

    Example:
        ```python
        _configure_logging(verbose=True)
        ```
    """
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=_CONSOLE, show_path=False)],
        force=True,
    )


def _all_passed(result: ExecutionResult) -> bool:
    """Return True when the run produced a report with no failing check.

    Example:
        ```python
        assert _all_passed(ExecutionResult(passed=2, total=2, checks=[True, True]))
        ```
    """
    return result.ok and result.passed == result.total


def _print_result(result: ExecutionResult, title: str) -> None:
    """Render one execution result the way the workspace console does.

    Example:
        ```python
        _print_result(ExecutionResult(passed=1, total=1, checks=[True]), "debounce")
        ```
    """
    if result.console:
        _CONSOLE.print(Panel(Text("\n".join(result.console)), title="Console", border_style="dim"))
    if not result.ok:
        kind = result.failure.value if result.failure else "error"
        _CONSOLE.print(Panel.fit(Text(f"Execution failed: {result.error}\n{kind}"), title=title, style="bold red"))
        return
    marks = " ".join("[green]✔[/green]" if check else "[red]✘[/red]" for check in result.checks)
    style = "bold green" if _all_passed(result) else "bold yellow"
    body = f"Passed {result.passed}/{result.total} tests"
    if marks:
        body = f"{body}\n{marks}"
    _CONSOLE.print(Panel.fit(body, title=title, style=style))


def _print_challenges() -> None:
    """Render bundled challenges in a rich table.

    Example:
        ```python
        _print_challenges()
        ```
    """
    table = Table(title="Challenges")
    table.add_column("Slug", style="cyan")
    table.add_column("Title", style="magenta")
    table.add_column("Level")
    table.add_column("Category")
    table.add_column("Duration")
    for challenge in CHALLENGES:
        table.add_row(
            challenge.slug,
            challenge.title,
            challenge.level,
            challenge.category,
            challenge.duration,
        )
    _CONSOLE.print(table)


def _read_source(path: str) -> str:
    """Read a source file given on the command line.

    Example:
        ```python
        code = _read_source("solution.js")
        ```
    """
    return Path(path).read_text(encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `crun` CLI command handler.

    Example:
        ```python
        code = main(["run", "--challenge", "debounce", "--code", "solution.js"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _configure_logging(args.verbose)

    if args.command == "list":
        _print_challenges()
        return 0

    if args.command == "show":
        try:
            challenge = get_challenge(args.slug)
        except KeyError:
            _CONSOLE.print(Panel.fit(f"No challenge matched '{args.slug}'", style="bold red"))
            return 1
        _CONSOLE.print(
            Panel.fit(
                "\n\n".join(challenge.description),
                title=f"{challenge.title} · {challenge.level} · {challenge.category}",
                border_style="cyan",
            )
        )
        _CONSOLE.print(Panel(Syntax(challenge.example, "javascript"), title="Example"))
        _CONSOLE.print(Panel(Syntax(challenge.starter_code, "javascript"), title="Starter code"))
        return 0

    try:
        policy = build_policy(args)
    except (OSError, ValueError) as exc:
        _CONSOLE.print(Panel.fit(Text(f"Invalid policy: {exc}"), style="bold red"))
        return 2
    engine = build_engine(args)

    if args.command == "run":
        try:
            code = _read_source(args.code)
            if args.challenge:
                title = args.challenge
                test_script = get_challenge(args.challenge).test_script
            else:
                title = Path(args.test).name
                test_script = _read_source(args.test)
        except KeyError:
            _CONSOLE.print(Panel.fit(f"No challenge matched '{args.challenge}'", style="bold red"))
            return 1
        except OSError as exc:
            _CONSOLE.print(Panel.fit(Text(f"Cannot read source: {exc}"), style="bold red"))
            return 2
        result = asyncio.run(execute(code, test_script, engine=engine, policy=policy))
        _print_result(result, title)
        return 0 if _all_passed(result) else 1

    if args.command == "check":
        try:
            selected = [get_challenge(slug) for slug in args.slugs] if args.slugs else list(CHALLENGES)
        except KeyError as exc:
            _CONSOLE.print(Panel.fit(Text(f"No challenge matched {exc}"), style="bold red"))
            return 1

        async def _check_all() -> list[ExecutionResult]:
            """Run every selected reference solution concurrently.

            Example:
                ```python
                results = asyncio.run(_check_all())
                ```
            """
            return list(
                await asyncio.gather(
                    *(
                        execute(item.reference_solution, item.test_script, engine=engine, policy=policy)
                        for item in selected
                    )
                )
            )

        results = asyncio.run(_check_all())
        for challenge, result in zip(selected, results):
            _print_result(result, challenge.slug)
        failing = sum(1 for result in results if not _all_passed(result))
        if failing:
            _CONSOLE.print(Panel.fit(f"{failing} reference solution(s) failed", style="bold red"))
            return 1
        _CONSOLE.print(Panel.fit(f"All {len(results)} reference solution(s) passed", style="bold green"))
        return 0

    parser.error("Unhandled command")
    return 2
