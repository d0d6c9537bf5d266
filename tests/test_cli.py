from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from zq_runner import ProcessExecutionError
from zq_runner.execution.types import ProcessOutcome
from zqr import cli


class _FakeEngine:
    stdout = '{"id": 1}\n{"id": 2}'
    error: Exception | None = None
    calls: list[tuple[str, str]] = []

    def __init__(self, settings) -> None:
        self.settings = settings

    @classmethod
    def from_settings(cls, settings) -> "_FakeEngine":
        return cls(settings)

    def run(self, input_payload: str, query_text: str) -> ProcessOutcome:
        self.__class__.calls.append((input_payload, query_text))
        if self.error is not None:
            raise self.error
        return ProcessOutcome(0, self.stdout, "")


@pytest.fixture(autouse=True)
def _patch_engine(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeEngine.calls = []
    _FakeEngine.error = None
    _FakeEngine.stdout = '{"id": 1}\n{"id": 2}'
    monkeypatch.setattr(cli, "ProcessEngine", _FakeEngine)


def test_cli_run_prints_ndjson(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "sort id", "--data", '[{"id": 2}, {"id": 1}]'])
    lines = capsys.readouterr().out.strip().splitlines()

    assert code == 0
    assert [json.loads(line) for line in lines] == [{"id": 1}, {"id": 2}]
    assert _FakeEngine.calls == [('[{"id":2},{"id":1}]', "sort id")]


def test_cli_run_reads_payload_from_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    data_file = tmp_path / "people.json"
    data_file.write_text('{"name": "Alice"}', encoding="utf-8")

    code = cli.main(["run", "yield this", "--data-file", str(data_file), "--format", "json"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == [{"id": 1}, {"id": 2}]
    assert _FakeEngine.calls[0][0] == '{"name":"Alice"}'


def test_cli_run_reads_payload_from_stdin(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO("[1, 2, 3]"))

    code = cli.main(["run", "head 1", "--format", "items"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == [{"json": {"id": 1}}, {"json": {"id": 2}}]
    assert _FakeEngine.calls[0][0] == "[1,2,3]"


def test_cli_run_table_format(capsys: pytest.CaptureFixture[str]) -> None:
    _FakeEngine.stdout = '[{"id": 1, "name": "Alice"}, {"id": 2, "tags": ["x"]}]'

    code = cli.main(["run", "yield this", "--data", "[]", "--format", "table"])
    output = capsys.readouterr().out

    assert code == 0
    assert "Records (2)" in output
    assert "Alice" in output
    assert '["x"]' in output


def test_cli_run_reports_invalid_input(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run", "head 1", "--data", "{broken"])
    output = capsys.readouterr().out

    assert code == 1
    assert "Invalid JSON data provided" in output
    assert _FakeEngine.calls == []


def test_cli_run_reports_engine_failure(capsys: pytest.CaptureFixture[str]) -> None:
    _FakeEngine.error = ProcessExecutionError(2, "bad query")

    code = cli.main(["run", "bogus(", "--data", "{}"])
    output = capsys.readouterr().out

    assert code == 1
    assert "Query Failed" in output
    assert "bad query" in output


def test_cli_normalize_reads_stdin(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO('{"a": 1}\ngarbage\n{"a": 2}\n'))

    code = cli.main(["normalize"])
    captured = capsys.readouterr()

    assert code == 0
    assert [json.loads(line) for line in captured.out.strip().splitlines()] == [{"a": 1}, {"a": 2}]
    assert "Discarded 1 unparseable line(s)" in captured.err


def test_cli_normalize_reports_parse_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    output_file = tmp_path / "out.txt"
    output_file.write_text("not json at all", encoding="utf-8")

    code = cli.main(["normalize", "--file", str(output_file)])

    assert code == 1
    assert "Normalize Failed" in capsys.readouterr().out


def test_cli_check_missing_engine(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--engine", "/nonexistent/zq-binary", "check"])

    assert code == 1
    assert "was not found" in capsys.readouterr().out


def test_cli_engine_and_timeout_overrides(tmp_path: Path) -> None:
    settings_file = tmp_path / "zq_runner.toml"
    settings_file.write_text("[settings]\ntimeout_seconds = 3\n", encoding="utf-8")
    parser = cli.build_parser()

    args = parser.parse_args(["--config", str(settings_file), "--engine", "zq2", "run", "head 1"])
    settings = cli.build_settings(args)
    assert settings.engine_command == ["zq2"]
    assert settings.timeout_seconds == 3

    args = parser.parse_args(["--timeout-seconds", "9", "check"])
    assert cli.build_settings(args).timeout_seconds == 9


def test_cli_rejects_negative_timeout(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["--timeout-seconds", "-1", "check"])

    assert code == 1
    assert "Invalid settings" in capsys.readouterr().out


def test_cli_top_level_help_examples(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    output = capsys.readouterr().out
    assert exc.value.code == 0
    assert "Quick Examples:" in output
    assert "zqr normalize" in output


def test_cli_data_sources_are_mutually_exclusive(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["run", "head 1", "--data", "{}", "--data-file", "x.json"])
    assert exc.value.code == 2


def test_cli_run_reports_undecodable_payload_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    data_file = tmp_path / "latin1.json"
    data_file.write_bytes(b'{"name": "\xff\xfe"}')

    code = cli.main(["run", "yield this", "--data-file", str(data_file)])

    assert code == 1
    assert "Cannot read payload" in capsys.readouterr().out
    assert _FakeEngine.calls == []


def test_cli_normalize_reports_undecodable_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    output_file = tmp_path / "out.bin"
    output_file.write_bytes(b"\xff\xfe{}")

    code = cli.main(["normalize", "--file", str(output_file)])

    assert code == 1
    assert "Normalize Failed" in capsys.readouterr().out
