"""CLI checks for listing, readiness and strategy launch."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest

import cli.main as cli_main
from services.rebalance.engine import Rebalancer
from services.strategy.mean_reversion import MeanReversionStrategy
from tests.fakes.fake_gateway import FakeGateway

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def universe_file(tmp_path: Path) -> Path:
    path = tmp_path / "universe.yaml"
    path.write_text("symbols: [AAPL, MSFT, AMZN, TSLA]\ntick_interval_sec: 30\n")
    return path


def test_list_numbers_strategies(capsys) -> None:
    assert cli_main.main(["list"]) == 0
    out = capsys.readouterr().out
    assert "1. Long Short Equity (long-short)" in out
    assert "2. Mean Reversion (mean-reversion)" in out


def test_check_not_ready_without_credentials(universe_file: Path, capsys) -> None:
    assert cli_main.main(["check", "--universe", str(universe_file)]) == 1
    assert "NOT READY" in capsys.readouterr().out


def test_check_ready(monkeypatch, universe_file: Path, capsys) -> None:
    monkeypatch.setenv("APCA_API_KEY_ID", "key")
    monkeypatch.setenv("APCA_API_SECRET_KEY", "secret")

    assert cli_main.main(["check", "--universe", str(universe_file)]) == 0
    out = capsys.readouterr().out
    assert "universe: AAPL, MSFT, AMZN, TSLA" in out
    assert out.strip().endswith("READY")


def test_run_unknown_strategy(universe_file: Path, capsys) -> None:
    code = cli_main.cmd_run("9", universe=str(universe_file), gateway=FakeGateway())
    assert code == 2
    assert "unknown strategy" in capsys.readouterr().err


def test_run_requires_credentials(universe_file: Path) -> None:
    assert cli_main.cmd_run("long-short", universe=str(universe_file)) == 1


@pytest.mark.parametrize("key, expected", [("1", Rebalancer), ("mean-reversion", MeanReversionStrategy)])
def test_run_wires_strategy_into_loop(monkeypatch, universe_file: Path, key, expected) -> None:
    started = []

    async def fake_run_loop(loop) -> None:
        started.append(loop)

    monkeypatch.setattr(cli_main, "_run_loop", fake_run_loop)

    assert cli_main.cmd_run(key, universe=str(universe_file), gateway=FakeGateway()) == 0
    loop = started[0]
    assert isinstance(loop.strategy, expected)
    assert loop.submitter is loop.strategy.submitter
    assert loop.tick_interval == 30
    assert loop.preclose_window == 900


def test_run_subcommand_requires_strategy() -> None:
    with pytest.raises(SystemExit) as info:
        cli_main.main(["run"])
    assert info.value.code == 2


def test_module_entrypoint_check() -> None:
    env = dict(os.environ)
    for name in ("APCA_API_KEY_ID", "ALPACA_API_KEY_ID", "ALPACA_KEY_ID"):
        env.pop(name, None)

    result = subprocess.run(
        [sys.executable, "-m", "cli.main", "check"],
        env=env,
        cwd=ROOT,
        capture_output=True,
        text=True,
    )

    assert result.returncode != 0
    assert "NOT READY" in result.stdout


def test_run_logs_paper_flag_from_settings(monkeypatch, universe_file: Path) -> None:
    monkeypatch.setenv("ALPACA_PAPER", "false")
    monkeypatch.setenv("LIVE_TRADING", "true")
    records = []

    async def fake_run_loop(loop) -> None:
        return None

    def capture(msg, *args, **kwargs):
        records.append((msg, kwargs.get("extra", {})))

    monkeypatch.setattr(cli_main, "_run_loop", fake_run_loop)
    monkeypatch.setattr(cli_main.log, "info", capture)

    assert cli_main.cmd_run("long-short", universe=str(universe_file), gateway=FakeGateway()) == 0
    run_extra = dict(records)["cli.run"]
    assert run_extra["paper"] is False
