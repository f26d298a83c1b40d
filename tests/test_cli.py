# tests/test_cli.py
from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from composedtask.cli import commands, run_cli

from conftest import FakeTaskOperations


def _write_json_config(path: Path, graph: object, **settings: object) -> None:
    path.write_text(json.dumps({"graph": graph, **settings}), encoding="utf-8")


@pytest.fixture
def ops(monkeypatch: pytest.MonkeyPatch) -> FakeTaskOperations:
    fake = FakeTaskOperations()
    monkeypatch.setattr(commands, "DataFlowClient", SimpleNamespace(from_config=lambda settings: fake))
    return fake


DIAMOND = {"sequence": ["A", {"split": ["B", "C"]}, "D"]}


def test_list_prints_one_step_per_line(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "composedtask.json"
    _write_json_config(cfg, {"sequence": ["A", "B", "A"]})

    code = run_cli(["--config", str(cfg), "list"])
    out = capsys.readouterr().out.splitlines()

    assert code == 0
    assert out == ["A_0", "B_0", "A_1"]


def test_plan_prints_indented_tree(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "composedtask.json"
    graph = {
        "sequence": [
            {"task": {"name": "A", "label": "first"}},
            {"split": ["B", "C"]},
            {"label": {"name": "again", "target": "first"}},
        ]
    }
    _write_json_config(cfg, graph)

    code = run_cli(["--config", str(cfg), "plan"])
    out = capsys.readouterr().out.splitlines()

    assert code == 0
    assert out == [
        "sequence",
        "  first_0 -> A",
        "  split",
        "    B_0",
        "    C_0",
        "  again_0 -> A",
    ]


def test_run_executes_and_reports(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], ops: FakeTaskOperations
) -> None:
    cfg = tmp_path / "composedtask.json"
    _write_json_config(cfg, DIAMOND, intervalTimeBetweenChecks=10)

    code = run_cli(["--config", str(cfg), "run"])
    out = capsys.readouterr().out

    assert code == 0
    for step in ("A_0", "B_0", "C_0", "D_0"):
        assert f"OK {step}" in out
    assert sorted(ops.launched_tasks()) == ["A", "B", "C", "D"]


def test_run_failure_returns_1(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], ops: FakeTaskOperations
) -> None:
    cfg = tmp_path / "composedtask.json"
    _write_json_config(cfg, DIAMOND, intervalTimeBetweenChecks=10)
    ops.exit_codes["B"] = 5

    code = run_cli(["--config", str(cfg), "run"])
    out = capsys.readouterr().out

    assert code == 1
    assert "FAIL B_0" in out
    assert "exit code = 5" in out
    assert "OK C_0" in out
    assert "SKIP D_0" in out


def test_run_continue_on_failure_flag(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], ops: FakeTaskOperations
) -> None:
    cfg = tmp_path / "composedtask.json"
    _write_json_config(cfg, {"sequence": ["A", "B"]}, intervalTimeBetweenChecks=10)
    ops.exit_codes["A"] = 1

    code = run_cli(["--config", str(cfg), "run", "--continue-on-failure"])
    out = capsys.readouterr().out

    assert code == 1
    assert "FAIL A_0" in out
    assert "OK B_0" in out


def test_unknown_platform_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], ops: FakeTaskOperations
) -> None:
    cfg = tmp_path / "composedtask.json"
    _write_json_config(cfg, "A", platformName="k8s")

    code = run_cli(["--config", str(cfg), "run"])
    captured = capsys.readouterr()

    assert code == 2
    assert "k8s" in captured.err
    assert ops.launches == []


def test_invalid_config_path_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    missing = tmp_path / "missing.json"

    code = run_cli(["--config", str(missing), "list"])
    captured = capsys.readouterr()

    assert code == 2
    assert captured.err != ""


def test_label_cycle_returns_2(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cfg = tmp_path / "composedtask.json"
    graph = {
        "sequence": [
            {"label": {"name": "x", "target": "y"}},
            {"label": {"name": "y", "target": "x"}},
        ]
    }
    _write_json_config(cfg, graph)

    code = run_cli(["--config", str(cfg), "plan"])
    captured = capsys.readouterr()

    assert code == 2
    assert "Cycle detected" in captured.err
