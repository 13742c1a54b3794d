"""
Tests for source ingestion and prediction export.

What we test
------------
1. Open — CSV header and string rows; CSV has no sheets.
2. Open — missing files and unsupported or missing extensions raise
   IngestionError with their titles.
3. write_predictions — header, ISO-8601 timestamps with offset, forced
   ``.csv`` suffix, overwrite, missing directory.
4. write_report — progress and evaluation records as JSON.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tarot_forecaster.data.schemas import (
    ComparisonPoint,
    EvaluationReport,
    ProgressPoint,
    TrainProgress,
)
from tarot_forecaster.data.export import write_predictions, write_report
from tarot_forecaster.data.loaders import Open
from tarot_forecaster.utils.errors import IngestionError, TarotError


# ── Open ──────────────────────────────────────────────────────────────────────

def test_read_csv(daily_csv: Path, quiet_logger) -> None:
    source = Open(daily_csv, logger=quiet_logger)
    header, rows = source.read()
    assert header == ["Date", "Value", "Note"]
    assert len(rows) == 20
    assert rows[0][0] == "2024-01-01 00:00:00"
    assert all(isinstance(cell, str) for cell in rows[0])
    assert source.sheet_names() is None
    assert not source.is_spreadsheet
    assert source.name == "daily.csv"


def test_missing_file(tmp_path: Path, quiet_logger) -> None:
    with pytest.raises(IngestionError) as info:
        Open(tmp_path / "absent.csv", logger=quiet_logger)
    assert info.value.title == "Cannot Open File"


@pytest.mark.parametrize("name", ["table.txt", "table"])
def test_unsupported_extension(tmp_path: Path, quiet_logger, name: str) -> None:
    path = tmp_path / name
    path.write_text("a,b\n1,2\n", encoding="utf-8")
    with pytest.raises(IngestionError) as info:
        Open(path, logger=quiet_logger)
    assert info.value.title == "File Type Unsupported"


def test_empty_csv(tmp_path: Path, quiet_logger) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(IngestionError):
        Open(path, logger=quiet_logger).read()


# ── write_predictions ─────────────────────────────────────────────────────────

def _predictions() -> list[tuple[datetime, float]]:
    zone = timezone(timedelta(hours=2))
    start = datetime(2024, 1, 1, 6, 0, tzinfo=zone)
    return [(start + timedelta(hours=i), 1.5 * i) for i in range(3)]


def test_export_format(tmp_path: Path) -> None:
    path = write_predictions(tmp_path / "forecast", _predictions())
    assert path == tmp_path / "forecast.csv"
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Date/Time,Predicted Value"
    assert lines[1] == "2024-01-01T06:00:00+02:00,0.0"
    assert lines[2] == "2024-01-01T07:00:00+02:00,1.5"
    assert len(lines) == 4


def test_export_forces_csv_suffix(tmp_path: Path) -> None:
    path = write_predictions(tmp_path / "forecast.txt", _predictions())
    assert path.suffix == ".csv"
    assert path.exists()


def test_export_overwrites(tmp_path: Path) -> None:
    target = tmp_path / "out.csv"
    target.write_text("stale\n", encoding="utf-8")
    write_predictions(target, _predictions()[:1])
    assert target.read_text(encoding="utf-8").splitlines()[0] == "Date/Time,Predicted Value"


def test_export_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(TarotError) as info:
        write_predictions(tmp_path / "nope" / "out.csv", _predictions())
    assert info.value.title == "Failed to Save Prediction"


# ── write_report ──────────────────────────────────────────────────────────────

def test_report_records(tmp_path: Path) -> None:
    moment, value = _predictions()[0]
    observed = ComparisonPoint(moment - timedelta(hours=1), observed=2.0)
    predicted = ComparisonPoint(moment, predicted=value)
    report = EvaluationReport(80.0, (observed, predicted), predicted, predicted)
    progress = TrainProgress([ProgressPoint(1, 0.0), ProgressPoint(2, 80.0)])

    path = write_report(tmp_path / "report", report, progress)
    assert path.suffix == ".json"
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["progress"] == {
        "confidencePoints": [{"x": 1, "y": 0.0}, {"x": 2, "y": 80.0}],
        "endX": 500,
    }
    evaluation = record["evaluation"]
    assert evaluation["confidence"] == 80.0
    assert evaluation["graph"][0] == {
        "x": "2024-01-01T05:00:00+02:00", "y0": 2.0, "y1": None,
    }
    assert evaluation["highPeak"]["x"] == "2024-01-01T06:00:00+02:00"
    assert evaluation["lowPeak"]["y1"] == 0.0
