# stdlib
from datetime import datetime
from typing import Optional, Sequence
# thirdpartylib
import numpy as np
# projectlib
from tarot_forecaster.data.schemas import (
    BatchPeriod,
    Column,
    ColumnType,
    Row,
)

# Exclusive upper bounds, in seconds, of the finest gap that still allows
# MINUTELY, HOURLY, DAILY, WEEKLY and MONTHLY as the finest candidate
GAP_BOUNDS: tuple[int, ...] = (60, 3_600, 86_400, 604_800, 2_592_000)


def smallest_gap(
        columns: Sequence[Column],
        rows: Sequence[Row]
    ) -> Optional[int]:
    """
    Smallest strictly positive gap, in seconds, between neighbouring
    values of any DATETIME column.

    Values are sorted per column first, so the answer does not depend
    on row order. Returns ``None`` when no column has two distinct
    timestamps.
    """
    gaps: list[int] = []
    for column in columns:
        if column.column_type is not ColumnType.DATETIME:
            continue
        stamps = np.sort(np.array(
            [
                int(value.timestamp())
                for row in rows
                if isinstance(value := row.get(column.field), datetime)
            ],
            dtype=np.int64,
        ))
        diffs = np.diff(stamps)
        positive = diffs[diffs > 0]
        if positive.size:
            gaps.append(int(positive.min()))
    return min(gaps) if gaps else None

def periods_for_gap(gap: Optional[int]) -> list[BatchPeriod]:
    """
    Periods allowed by the finest observed gap, finest first.

    A gap below 60 seconds allows every period; each threshold crossed
    removes the finest remaining one, down to YEARLY alone.
    """
    periods = list(BatchPeriod)
    if gap is None:
        return periods
    for skip, bound in enumerate(GAP_BOUNDS):
        if gap < bound:
            return periods[skip:]
    return [BatchPeriod.YEARLY]

def allowed_periods(
        columns: Sequence[Column],
        rows: Sequence[Row]
    ) -> list[BatchPeriod]:
    """Candidate batch periods for classified rows."""
    return periods_for_gap(smallest_gap(columns, rows))

def default_period(candidates: Sequence[BatchPeriod]) -> BatchPeriod:
    """Second candidate if present, else the first, else YEARLY."""
    if len(candidates) > 1:
        return candidates[1]
    if candidates:
        return candidates[0]
    return BatchPeriod.YEARLY
