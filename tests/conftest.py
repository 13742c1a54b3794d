"""
Shared pytest fixtures for the tarot-forecaster test suite.

Provides:
  - ``utc``: the UTC zone, so results never depend on the machine's zone.
  - ``quiet_logger``: a Logger that prints nothing.
  - ``daily_rows`` / ``daily_csv``: 20 days of a smooth synthetic series.
  - ``daily_workbook``: the same series on the second sheet of an xlsx file.
  - ``small_history``: a hand-built HistoricalData for model tests.
  - ``fast_trainer_options``: Trainer epoch bounds that keep tests quick.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from tarot_forecaster.data.schemas import HistoricalData
from tarot_forecaster.utils.logging import Logger

START = datetime(2024, 1, 1, 0, 0, 0)


def daily_value(day: int) -> float:
    """Synthetic daily value: a slow wave around 50."""
    return round(50.0 + 10.0 * math.sin(day / 3.0), 4)


# ── Zones and logging ─────────────────────────────────────────────────────────

@pytest.fixture
def utc() -> tzinfo:
    return timezone.utc


@pytest.fixture
def quiet_logger() -> Logger:
    """Logger whose threshold hides every message."""
    return Logger(verbose=-1, name="test")  # type: ignore[arg-type]


# ── Raw tables ────────────────────────────────────────────────────────────────

@pytest.fixture
def daily_rows() -> list[list[str]]:
    """20 rows of (date/time, value, note) strings, one per day."""
    return [
        [
            (START + timedelta(days=day)).strftime("%Y-%m-%d %H:%M:%S"),
            f"{daily_value(day)}",
            "memo",
        ]
        for day in range(20)
    ]


@pytest.fixture
def daily_csv(tmp_path: Path, daily_rows: list[list[str]]) -> Path:
    """CSV file holding ``daily_rows`` under a ``Date,Value,Note`` header."""
    path = tmp_path / "daily.csv"
    lines = ["Date,Value,Note"] + [",".join(row) for row in daily_rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def daily_workbook(tmp_path: Path) -> Path:
    """
    Two-sheet workbook: ``Notes`` holds text only, ``Data`` holds the
    daily series as native datetime and number cells.
    """
    path = tmp_path / "daily.xlsx"
    notes = pd.DataFrame({"Topic": ["memo"] * 12, "Text": ["memo"] * 12})
    data = pd.DataFrame({
        "Date": [START + timedelta(days=day) for day in range(20)],
        "Value": [daily_value(day) for day in range(20)],
    })
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        notes.to_excel(writer, sheet_name="Notes", index=False)
        data.to_excel(writer, sheet_name="Data", index=False)
    return path


@pytest.fixture
def constant_csv(tmp_path: Path) -> Path:
    """Daily CSV whose value never changes."""
    path = tmp_path / "constant.csv"
    lines = ["Date,Value"] + [
        f"{(START + timedelta(days=day)).strftime('%Y-%m-%d %H:%M:%S')},7.0"
        for day in range(20)
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


# ── Model inputs ──────────────────────────────────────────────────────────────

@pytest.fixture
def small_history() -> HistoricalData:
    """10 batches of 4 points of a noisy ramp, one point per hour."""
    rng = np.random.default_rng(0)
    values = np.linspace(0.0, 10.0, 40) + rng.normal(0.0, 0.1, 40)
    return HistoricalData(
        batches=values.reshape(10, 4),
        first_timestamp=int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp()),
        timestamp_interval=3600.0,
    )


@pytest.fixture
def fast_trainer_options() -> dict:
    """Trainer keyword arguments for short runs."""
    return {"max_epochs": 5, "min_epochs": 1}
