"""
Tests for the command-line forecasting script.

What we test
------------
1. parse_args — defaults and period choices.
2. build_config — sheet defaults fill unset arguments.
3. main — full run writes the prediction CSV, the chart and the report.
4. main — user-facing failures exit with status 1.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import forecast
from tarot_forecaster.data.schemas import (
    BatchPeriod,
    Column,
    ColumnType,
    SheetSummary,
)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _summary() -> SheetSummary:
    return SheetSummary(
        name="t.csv",
        tabs=None,
        tab_name=None,
        columns=[
            Column("date", "Date", ColumnType.DATETIME),
            Column("value", "Value", ColumnType.NUMBER),
        ],
        rows=[],
        allowed_periods=[BatchPeriod.WEEKLY, BatchPeriod.MONTHLY],
        selected_datetime_column="date",
        selected_predictable_column="value",
        selected_period=BatchPeriod.MONTHLY,
    )


# ── Arguments ─────────────────────────────────────────────────────────────────

def test_parse_args_defaults(tmp_path: Path) -> None:
    args = forecast.parse_args(["--source", str(tmp_path / "a.csv")])
    assert args.source == tmp_path / "a.csv"
    assert args.period is None
    assert args.output is None
    assert not args.write_log


def test_parse_args_rejects_unknown_period(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        forecast.parse_args(["--source", "a.csv", "--period", "hourlyish"])


def test_build_config_uses_summary_defaults() -> None:
    args = forecast.parse_args(["--source", "a.csv"])
    config = forecast.build_config(args, _summary())
    assert config.datetime_column == "date"
    assert config.predictable_column == "value"
    assert config.batch_period is BatchPeriod.MONTHLY


def test_build_config_overrides() -> None:
    args = forecast.parse_args(
        ["--source", "a.csv", "--value-column", "Value", "--period", "daily"]
    )
    config = forecast.build_config(args, _summary())
    assert config.predictable_column == "value"
    assert config.batch_period is BatchPeriod.DAILY


# ── main ──────────────────────────────────────────────────────────────────────

def test_main_end_to_end(daily_csv: Path, tmp_path: Path) -> None:
    output = tmp_path / "prediction.csv"
    chart = tmp_path / "chart.png"
    record = tmp_path / "report.json"
    status = forecast.main([
        "--source", str(daily_csv),
        "--period", "daily",
        "--output", str(output),
        "--plot", str(chart),
        "--report", str(record),
        "--seed", "3",
        "--verbosity", "0",
    ])
    assert status == 0
    lines = output.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Date/Time,Predicted Value"
    assert len(lines) == 1 + 9
    # Forecasts stay within the observed range, widened by one span
    observed = [
        float(line.split(",")[1])
        for line in daily_csv.read_text(encoding="utf-8").splitlines()[1:]
    ]
    low, high = min(observed), max(observed)
    tolerance = high - low
    values = [float(line.split(",")[1]) for line in lines[1:]]
    assert all(low - tolerance <= v <= high + tolerance for v in values)
    assert chart.exists()
    evaluation = json.loads(record.read_text(encoding="utf-8"))["evaluation"]
    assert sum(p["y1"] is not None for p in evaluation["graph"]) == 9


def test_main_missing_source(tmp_path: Path, capsys) -> None:
    status = forecast.main(["--source", str(tmp_path / "absent.csv")])
    assert status == 1
    assert "Cannot Open File" in capsys.readouterr().err
