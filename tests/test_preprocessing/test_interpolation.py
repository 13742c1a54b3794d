"""
Tests for series preparation, batch sizing and resampling.

What we test
------------
1. prepare_series — sorted output, first duplicate timestamp wins.
2. calculate_batch_info — true maximum run length (final run included),
   interval and count arithmetic.
3. BatchResampler.batch_info — fewer than two batches is rejected.
4. BatchResampler.resample — clamping at both ends, exact on linear data.
5. BatchResampler.run — end-to-end shape and grid origin; empty input.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from tarot_forecaster.data.schemas import BatchInfo, BatchPeriod
from tarot_forecaster.preprocessing.interpolation import (
    BatchResampler,
    calculate_batch_info,
    prepare_series,
    rle,
)
from tarot_forecaster.utils.errors import ComputationError, DataQualityError


# ── Helpers ────────────────────────────────────────────────────────────────────

_DAY = 86_400
_ORIGIN = int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp())


def _stamps(*offsets: int) -> np.ndarray:
    return np.array([_ORIGIN + o for o in offsets], dtype=np.int64)


# ── prepare_series / rle ───────────────────────────────────────────────────────

def test_prepare_series_sorts_and_keeps_first_duplicate() -> None:
    frame = prepare_series([(10, 1.0), (5, 2.0), (10, 3.0)])
    assert frame["timestamp"].to_list() == [5, 10]
    assert frame["value"].to_list() == [2.0, 1.0]


def test_rle_runs() -> None:
    starts, lengths, values = rle(np.array([1, 1, 2, 2, 2, 1]))
    assert starts.tolist() == [0, 2, 5]
    assert lengths.tolist() == [2, 3, 1]
    assert values.tolist() == [1, 2, 1]


# ── calculate_batch_info ───────────────────────────────────────────────────────

def test_batch_info_hourly_points_daily_period() -> None:
    stamps = _stamps(*(h * 3_600 for h in range(72)))
    info = calculate_batch_info(stamps, BatchPeriod.DAILY)
    assert info.sequence_size == 24
    assert info.interval == pytest.approx(3_600.0)
    assert info.sequence_count == 2


def test_batch_info_counts_final_run() -> None:
    stamps = _stamps(0, _DAY, _DAY + 3_600, _DAY + 7_200)
    info = calculate_batch_info(stamps, BatchPeriod.DAILY)
    assert info.sequence_size == 3
    assert info.interval == pytest.approx(_DAY / 3)


def test_batch_info_interval_is_fractional() -> None:
    stamps = _stamps(0, 60, 120, _DAY * 30)
    info = calculate_batch_info(stamps, BatchPeriod.DAILY)
    assert info.sequence_size == 3
    assert info.interval == pytest.approx(28_800.0)
    stamps = _stamps(*(h * 3_600 for h in range(7)), _DAY * 10)
    info = calculate_batch_info(stamps, BatchPeriod.DAILY)
    assert info.sequence_size == 7
    assert info.interval == pytest.approx(_DAY / 7)
    assert info.interval != _DAY // 7


def test_batch_info_daily_points() -> None:
    stamps = _stamps(*(d * _DAY for d in range(20)))
    info = calculate_batch_info(stamps, BatchPeriod.DAILY)
    assert info == BatchInfo(sequence_size=1, sequence_count=19, interval=_DAY)


def test_batch_info_rejects_single_batch(quiet_logger) -> None:
    series = prepare_series([(_ORIGIN, 1.0), (_ORIGIN + _DAY, 2.0)])
    with pytest.raises(DataQualityError) as info:
        BatchResampler(quiet_logger).batch_info(series, BatchPeriod.DAILY)
    assert info.value.title == "Unable to Spot The Pattern"


# ── resample ──────────────────────────────────────────────────────────────────

def test_resample_linear_data_and_clamps(quiet_logger) -> None:
    xs = [0, 100, 250, 400, 500]
    series = prepare_series([(x, 2.0 * x) for x in xs])
    info = BatchInfo(sequence_size=2, sequence_count=4, interval=100.0)
    batches = BatchResampler(quiet_logger).resample(series, info)
    assert batches.shape == (4, 2)
    flat = batches.reshape(-1)
    # First grid point sits on the first sample
    assert flat[0] == 0.0
    np.testing.assert_allclose(flat[1:5], [200.0, 400.0, 600.0, 800.0])
    # Points at or past the last sample take its value
    np.testing.assert_array_equal(flat[5:], [1000.0, 1000.0, 1000.0])


def test_resample_empty_series_fails(quiet_logger) -> None:
    series = prepare_series([])
    info = BatchInfo(sequence_size=1, sequence_count=2, interval=1.0)
    with pytest.raises(ComputationError):
        BatchResampler(quiet_logger).resample(series, info)


# ── run ───────────────────────────────────────────────────────────────────────

def test_run_daily_series(quiet_logger) -> None:
    pairs = [(_ORIGIN + d * _DAY, float(d)) for d in range(20)]
    history = BatchResampler(quiet_logger).run(reversed(pairs), BatchPeriod.DAILY)
    assert history.batch_count == 19
    assert history.sequence_size == 1
    assert history.first_timestamp == _ORIGIN
    assert history.timestamp_interval == _DAY
    np.testing.assert_allclose(history.flatten(), np.arange(19, dtype=float))
    assert not history.batches.flags.writeable


def test_run_empty_fails(quiet_logger) -> None:
    with pytest.raises(ComputationError):
        BatchResampler(quiet_logger).run([], BatchPeriod.DAILY)


def test_run_with_dates(quiet_logger) -> None:
    start = datetime(2024, 2, 1, tzinfo=timezone.utc)
    pairs = [
        (int((start + timedelta(hours=6 * i)).timestamp()), float(i % 4))
        for i in range(40)
    ]
    history = BatchResampler(quiet_logger).run(pairs, BatchPeriod.DAILY)
    assert history.sequence_size == 4
    assert history.timestamp_interval == pytest.approx(21_600.0)
    assert history.batch_count == 9
