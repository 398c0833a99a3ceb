from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from challenge_runner.execution import ExecutionOutcome, ExecutionRequest
from crun import cli


class _FakeEngine:
    requests: list[ExecutionRequest] = []
    response: dict = {"ok": True, "result": {"passed": 2, "total": 2, "checks": [True, True]}}
    timed_out = False
    options: dict = {}

    def __init__(self, **kwargs) -> None:
        self.__class__.options = kwargs

    async def execute(self, request: ExecutionRequest) -> ExecutionOutcome:
        self.__class__.requests.append(request)
        return ExecutionOutcome(
            stdout=json.dumps(self.__class__.response),
            stderr="",
            returncode=0,
            timed_out=self.__class__.timed_out,
        )


@pytest.fixture(autouse=True)
def _patch_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeEngine.requests = []
    _FakeEngine.timed_out = False
    _FakeEngine.options = {}
    _FakeEngine.response = {"ok": True, "result": {"passed": 2, "total": 2, "checks": [True, True]}}
    monkeypatch.setattr(cli, "LocalEngine", _FakeEngine)


@pytest.fixture()
def solution(tmp_path: Path) -> Path:
    path = tmp_path / "solution.js"
    path.write_text("function debounce(fn, wait) { return fn }\n", encoding="utf-8")
    return path


def test_cli_list_challenges(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["list"])
    output = capsys.readouterr().out
    assert code == 0
    assert "debounce" in output
    assert "event-emitter" in output


def test_cli_show_challenge(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["show", "throttle"])
    output = capsys.readouterr().out
    assert code == 0
    assert "function throttle(fn, wait)" in output


def test_cli_show_unknown_challenge(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["show", "missing"])
    output = capsys.readouterr().out
    assert code == 1
    assert "No challenge matched 'missing'" in output


def test_cli_run_against_challenge(solution: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "--challenge", "debounce", "--code", str(solution)])
    output = capsys.readouterr().out
    assert code == 0
    assert "Passed 2/2 tests" in output

    (request,) = _FakeEngine.requests
    assert request.payload["code"] == solution.read_text(encoding="utf-8")
    assert "Define a debounce function first" in request.payload["test_script"]
    assert request.timeout_seconds == 3.0


def test_cli_run_with_test_file_and_timeout(solution: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    test_file = tmp_path / "checks.js"
    test_file.write_text("return {passed: 0, total: 0, checks: []}", encoding="utf-8")
    _FakeEngine.response = {"ok": True, "result": {"passed": 1, "total": 2, "checks": [True, False]}}

    code = cli.main(["run", "--code", str(solution), "--test", str(test_file), "--timeout-ms", "1500"])
    output = capsys.readouterr().out
    assert code == 1
    assert "Passed 1/2 tests" in output

    (request,) = _FakeEngine.requests
    assert request.payload["test_script"] == test_file.read_text(encoding="utf-8")
    assert request.timeout_seconds == 1.5


def test_cli_timeout_message_names_overridden_deadline(solution: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _FakeEngine.timed_out = True
    _FakeEngine.response = {}

    code = cli.main(["run", "--challenge", "debounce", "--code", str(solution), "--timeout-ms", "1500"])
    output = capsys.readouterr().out
    assert code == 1
    assert "Execution timed out after 1500ms" in output


def test_cli_python_option_selects_worker_interpreter(solution: Path) -> None:
    code = cli.main(["run", "--challenge", "debounce", "--code", str(solution), "--python", "/opt/py/bin/python3"])
    assert code == 0
    assert _FakeEngine.options == {"python_executable": "/opt/py/bin/python3"}

    cli.main(["check", "throttle"])
    assert _FakeEngine.options == {"python_executable": None}


def test_cli_run_reports_failure(solution: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _FakeEngine.response = {"ok": False, "kind": "candidate_error", "error": "boom", "console": ["about to fail"]}

    code = cli.main(["run", "--challenge", "debounce", "--code", str(solution)])
    output = capsys.readouterr().out
    assert code == 1
    assert "Execution failed: boom" in output
    assert "candidate_error" in output
    assert "about to fail" in output


def test_cli_run_missing_code_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "--challenge", "debounce", "--code", str(tmp_path / "nope.js")])
    output = capsys.readouterr().out
    assert code == 2
    assert "Cannot read source" in output


def test_cli_run_rejects_invalid_timeout(solution: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "--challenge", "debounce", "--code", str(solution), "--timeout-ms", "0"])
    output = capsys.readouterr().out
    assert code == 2
    assert "Invalid policy" in output
    assert _FakeEngine.requests == []


def test_cli_run_requires_a_test_source(solution: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["run", "--code", str(solution)])
    assert exc.value.code == 2
    assert "Error:" in capsys.readouterr().out


def test_cli_check_all_reference_solutions(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["check"])
    output = capsys.readouterr().out
    assert code == 0
    assert "All 3 reference solution(s) passed" in output
    assert len(_FakeEngine.requests) == 3


def test_cli_check_reports_failures(capsys: pytest.CaptureFixture[str]) -> None:
    _FakeEngine.response = {"ok": False, "kind": "internal_fault", "error": "stalled"}

    code = cli.main(["check", "throttle"])
    output = capsys.readouterr().out
    assert code == 1
    assert "1 reference solution(s) failed" in output


def test_cli_top_level_help_examples(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    output = capsys.readouterr().out
    assert exc.value.code == 0
    assert "Quick Examples:" in output
    assert "python -m crun check" in output


def test_cli_print_help_writes_to_requested_stream(capsys: pytest.CaptureFixture[str]) -> None:
    parser = cli.build_parser()
    buffer = io.StringIO()
    parser.print_help(file=buffer)
    output = capsys.readouterr().out
    assert output == ""
    help_text = buffer.getvalue()
    assert "Usage:" in help_text
    assert "challenge-runner CLI" in help_text
