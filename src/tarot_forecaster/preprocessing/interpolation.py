# stdlib
from typing import Iterable, Optional, Sequence, Tuple
# thirdpartylib
import numpy as np
import polars as pl
import pandas as pd
from scipy.interpolate import Akima1DInterpolator
# projectlib
from tarot_forecaster.data.schemas import BatchInfo, BatchPeriod, HistoricalData
from tarot_forecaster.utils.typing import SeriesPair, FloatArray
from tarot_forecaster.utils.errors import ComputationError, DataQualityError
from tarot_forecaster.utils.logging import Logger


def prepare_series(pairs: Iterable[SeriesPair]) -> pl.DataFrame:
    """
    Sort observed ``(timestamp, value)`` pairs and drop repeated
    timestamps, keeping the first occurrence in source order.

    Returns a frame with ``timestamp`` (Int64 epoch seconds) and
    ``value`` (Float64) columns.
    """
    frame = pl.DataFrame(
        list(pairs),
        schema={"timestamp": pl.Int64, "value": pl.Float64},
        orient="row",
    )
    return (
        frame
        .unique(subset="timestamp", keep="first", maintain_order=True)
        .sort("timestamp", maintain_order=True)
    )

def rle(mask: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Run-length encode an integer array.

    Returns (run_starts, run_lengths, run_values).
    """
    if mask.size == 0:
        z = np.array([], dtype=np.int_)
        return z, z, z
    # Boundary whenever value changes; index 0 always starts a run
    change_idx = np.flatnonzero(np.r_[True, mask[1:] != mask[:-1]])
    lengths = np.diff(np.r_[change_idx, mask.size]).astype(np.int_)
    values = mask[change_idx]

    return change_idx.astype(np.int_), lengths, values

def calendar_subfield(
        timestamps: Sequence[int] | np.ndarray,
        period: BatchPeriod
    ) -> np.ndarray:
    """
    Calendar component that changes once per period (UTC calendar):
    minute of hour, hour of day, day of month, ISO week, month, year.
    """
    index = pd.to_datetime(np.asarray(timestamps, dtype=np.int64), unit="s")
    match period:
        case BatchPeriod.MINUTELY:
            field = index.minute
        case BatchPeriod.HOURLY:
            field = index.hour
        case BatchPeriod.DAILY:
            field = index.day
        case BatchPeriod.WEEKLY:
            field = index.isocalendar().week
        case BatchPeriod.MONTHLY:
            field = index.month
        case BatchPeriod.YEARLY:
            field = index.year
    return np.asarray(field, dtype=np.int64)

def calculate_batch_info(
        timestamps: Sequence[int] | np.ndarray,
        period: BatchPeriod
    ) -> BatchInfo:
    """
    Size the resampling grid for sorted timestamps.

    ``sequence_size`` is the longest run of consecutive points sharing
    the period's calendar subfield (at least 1); the period is split
    into that many equal intervals, and ``sequence_count`` is the number
    of whole batches that fit in the observed span.
    """
    stamps = np.asarray(timestamps, dtype=np.int64)
    _, lengths, _ = rle(calendar_subfield(stamps, period))
    sequence_size = max(int(lengths.max()) if lengths.size else 0, 1)
    interval = period.periodic_seconds / sequence_size
    span = int(stamps[-1] - stamps[0]) if stamps.size else 0
    sequence_count = int(abs(span) // (interval * sequence_size))

    return BatchInfo(
        sequence_size=sequence_size,
        sequence_count=sequence_count,
        interval=interval,
    )


class BatchResampler(object):
    """
    Resample an irregular series onto a uniform grid of fixed-size
    batches with an Akima spline.

    The spline is shape preserving and is never used to extrapolate:
    grid points at or before the first sample take the first observed
    value, and points at or after the last sample take the last one.
    """

    def __init__(self, logger: Optional[Logger] = None) -> None:
        self.logger = logger or Logger(name="BatchResampler")

    def batch_info(
            self,
            series: pl.DataFrame,
            period: BatchPeriod
        ) -> BatchInfo:
        """
        Raises
        ------
        DataQualityError
            Fewer than two whole batches fit in the series.
        """
        info = calculate_batch_info(series["timestamp"].to_numpy(), period)
        self.logger(
            f"Batch info for {period}: size={info.sequence_size}, "
            f"count={info.sequence_count}, interval={info.interval:g}s",
            verbosity=1,
        )
        if info.sequence_count < 2:
            raise DataQualityError(
                f"Because data pattern is not there {period}, "
                "try to change the quicker period",
                title="Unable to Spot The Pattern",
            )
        return info

    def resample(
            self,
            series: pl.DataFrame,
            info: BatchInfo
        ) -> FloatArray:
        """
        Evaluate the grid as a ``(sequence_count, sequence_size)`` array.

        Raises
        ------
        ComputationError
            The series is empty or the spline cannot be built.
        """
        if series.height == 0:
            raise ComputationError(
                "Cannot re-sample an empty table",
                title="Re-sampling Failed",
            )
        xa = series["timestamp"].to_numpy().astype(np.float64)
        ya = series["value"].to_numpy().astype(np.float64)
        x_first, x_last = xa[0], xa[-1]
        y_first, y_last = ya[0], ya[-1]
        # Grid of every point of every batch, starting at the first sample
        steps = np.arange(info.sequence_count * info.sequence_size)
        grid = x_first + info.interval * steps.astype(np.float64)
        values = np.empty_like(grid)
        values[grid <= x_first] = y_first
        values[grid >= x_last] = y_last
        inside = (grid > x_first) & (grid < x_last)
        if inside.any():
            try:
                spline = Akima1DInterpolator(xa, ya)
                values[inside] = spline(grid[inside])
            except ValueError as e:
                raise ComputationError(str(e), title="Re-sampling Failed") from e
        if not np.all(np.isfinite(values)):
            raise ComputationError(
                "Interpolation produced non-finite values",
                title="Re-sampling Failed",
            )

        return values.reshape(info.sequence_count, info.sequence_size)

    def run(
            self,
            pairs: Iterable[SeriesPair],
            period: BatchPeriod
        ) -> HistoricalData:
        """Prepare, size and resample observed pairs into history."""
        series = prepare_series(pairs)
        if series.height == 0:
            raise ComputationError(
                "Cannot re-sample an empty table",
                title="Re-sampling Failed",
            )
        info = self.batch_info(series, period)
        batches = self.resample(series, info)

        return HistoricalData(
            batches=batches,
            first_timestamp=int(series["timestamp"][0]),
            timestamp_interval=info.interval,
        )
