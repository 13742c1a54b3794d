"""
Tests for local-time conversion, address validation and logging.

What we test
------------
1. localize — ambiguous wall times take the earlier instant, skipped
   wall times return None.
2. to_local / to_epoch — instant conversions.
3. validate_address — existence, extension forcing, exclusive renames.
4. Logger — verbosity filter, file output with component names.
5. Error titles — string form carries the title.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from tarot_forecaster.utils.clock import localize, resolve_zone, to_epoch, to_local
from tarot_forecaster.utils.errors import DataQualityError, IngestionError
from tarot_forecaster.utils.logging import Logger
from tarot_forecaster.utils.paths import validate_address


# ── Clock ─────────────────────────────────────────────────────────────────────

_NEW_YORK = ZoneInfo("America/New_York")


def test_resolve_zone() -> None:
    assert resolve_zone(None) is None
    assert resolve_zone("") is None
    assert resolve_zone("UTC") == ZoneInfo("UTC")


def test_ambiguous_wall_time_is_earlier() -> None:
    moment = localize(datetime(2024, 11, 3, 1, 30), _NEW_YORK)
    assert moment is not None
    assert moment.utcoffset() == timedelta(hours=-4)


def test_skipped_wall_time_is_none() -> None:
    assert localize(datetime(2024, 3, 10, 2, 30), _NEW_YORK) is None
    assert to_epoch(datetime(2024, 3, 10, 2, 30), _NEW_YORK) is None


def test_aware_values_pass_through() -> None:
    aware = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert localize(aware, _NEW_YORK) is aware


def test_instant_round_trip() -> None:
    epoch = 1_704_067_200  # 2024-01-01T00:00:00Z
    moment = to_local(epoch, _NEW_YORK)
    assert moment.isoformat() == "2023-12-31T19:00:00-05:00"
    assert to_epoch(moment) == epoch


# ── validate_address ──────────────────────────────────────────────────────────

def test_read_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        validate_address(tmp_path / "absent.csv")


def test_missing_parent(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryError):
        validate_address(tmp_path / "a" / "b.csv", mode="w")


def test_extension_forced(tmp_path: Path) -> None:
    path = validate_address(str(tmp_path / "out.txt"), extension=".csv", mode="w")
    assert path == tmp_path / "out.csv"


def test_exclusive_mode_renames(tmp_path: Path) -> None:
    existing = tmp_path / "out.csv"
    existing.write_text("", encoding="utf-8")
    path = validate_address(existing, mode="x")
    assert path != existing
    assert path.stem.startswith("out_")


def test_allowed_suffixes(tmp_path: Path) -> None:
    path = tmp_path / "book.XLSX"
    path.write_text("", encoding="utf-8")
    assert validate_address(path, allowed=[".xlsx"]) == path
    with pytest.raises(ValueError):
        validate_address(path, allowed=[".csv"])


def test_mkdir(tmp_path: Path) -> None:
    target = tmp_path / "logs" / "run"
    assert validate_address(target, mkdir=True) == target
    assert target.is_dir()


# ── Logger ────────────────────────────────────────────────────────────────────

def test_logger_filters_by_verbosity(capsys) -> None:
    log = Logger(verbose=1, name="unit")
    log("shown", 1)
    log("hidden", 2)
    out = capsys.readouterr().out
    assert "[unit] shown" in out
    assert "hidden" not in out


def test_logger_writes_file(tmp_path: Path) -> None:
    log = Logger(verbose=0, log_dir=tmp_path / "logs", write_log=True, name="a")
    log("first")
    log.child("b")("second")
    lines = (tmp_path / "logs" / "log.txt").read_text(encoding="utf-8").splitlines()
    assert lines[0].endswith("[a] first")
    assert lines[1].endswith("[b] second")


# ── Errors ────────────────────────────────────────────────────────────────────

def test_error_titles() -> None:
    error = IngestionError("missing", title="Cannot Open File")
    assert str(error) == "Cannot Open File: missing"
    assert DataQualityError("x").title == "Data is Incomplete"
    assert DataQualityError("x").recoverable
