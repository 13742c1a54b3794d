# stdlib
from enum import Enum
from datetime import datetime
from dataclasses import dataclass, field
from typing import Optional, Union, Any, TypeAlias
# thirdpartylib
import numpy as np
# projectlib
from tarot_forecaster.utils.typing import Field, FloatArray

# Synthetic column holding the original row index of every kept row
ID_FIELD: Field = "id"
# Epoch bound shown next to training progress
TERMINAL_EPOCH = 500


class RowID(int):
    """Original row index, distinct from numeric cell values."""

    def __repr__(self) -> str:
        return f"RowID({int(self)})"


# Typed cell: String, Number, RowID, DateTime (aware, local), Boolean
CellValue: TypeAlias = Union[str, float, RowID, datetime, bool]
Row: TypeAlias = dict[Field, CellValue]


class ColumnType(str, Enum):
    """Inferred data type of a column."""
    STRING = 'string'
    NUMBER = 'number'
    DATETIME = 'dateTime'
    BOOLEAN = 'boolean'

    @classmethod
    def of(cls, value: CellValue) -> Optional["ColumnType"]:
        """Return the type of a typed cell; ``None`` for row ids."""
        # bool and RowID are int subclasses, check them first
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, RowID):
            return None
        if isinstance(value, (int, float)):
            return cls.NUMBER
        if isinstance(value, datetime):
            return cls.DATETIME
        return cls.STRING


class BatchPeriod(str, Enum):
    """
    Calendar granularity used to size the resampling grid, ordered from
    finest to coarsest.
    """
    MINUTELY = 'minutely'
    HOURLY = 'hourly'
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'
    YEARLY = 'yearly'

    @property
    def periodic_seconds(self) -> int:
        """Length of one period; months are 30 days, years 365.2425."""
        return _PERIODIC_SECONDS[self]

    def __str__(self) -> str:
        return self.value


_PERIODIC_SECONDS = {
    BatchPeriod.MINUTELY: 60,
    BatchPeriod.HOURLY: 3_600,
    BatchPeriod.DAILY: 86_400,
    BatchPeriod.WEEKLY: 604_800,
    BatchPeriod.MONTHLY: 2_592_000,
    BatchPeriod.YEARLY: 31_556_952,
}


class SelectionType(str, Enum):
    EXCLUDE = 'exclude'
    INCLUDE = 'include'


@dataclass(frozen=True)
class Column:
    field: Field
    header_name: str
    column_type: ColumnType


@dataclass(frozen=True)
class RowSelection:
    """Row ids picked by the user and whether they are kept or removed."""
    ids: frozenset[int] = frozenset()
    selection_type: SelectionType = SelectionType.EXCLUDE

    def keeps(self, index: int) -> bool:
        listed = index in self.ids
        if self.selection_type is SelectionType.INCLUDE:
            return listed
        return not listed


@dataclass(frozen=True)
class PreprocessConfig:
    datetime_column: Field
    predictable_column: Field
    batch_period: BatchPeriod
    row_selection: RowSelection = RowSelection()
    # None only for CSV sources
    tab_name: Optional[str] = None


@dataclass(frozen=True)
class BatchInfo:
    """
    Shape of the resampling grid.

    ``interval`` is the number of seconds between consecutive grid
    points; a batch spans ``interval * sequence_size`` seconds.
    """
    sequence_size: int
    sequence_count: int
    interval: float


@dataclass(frozen=True)
class HistoricalData:
    """
    Resampled history: ``sequence_count`` batches of ``sequence_size``
    values each, on a grid starting at ``first_timestamp`` (epoch
    seconds) with ``timestamp_interval`` seconds between points.
    """
    batches: FloatArray
    first_timestamp: int
    timestamp_interval: float

    def __post_init__(self) -> None:
        frozen = np.array(self.batches, dtype=np.float64, copy=True)
        if frozen.ndim != 2:
            raise ValueError("Historical batches must be two-dimensional.")
        frozen.flags.writeable = False
        object.__setattr__(self, "batches", frozen)

    @property
    def batch_count(self) -> int:
        return int(self.batches.shape[0])

    @property
    def sequence_size(self) -> int:
        return int(self.batches.shape[1])

    def flatten(self) -> FloatArray:
        """All values in chronological order."""
        return self.batches.reshape(-1)

    def timestamp_at(self, index: int) -> float:
        """Epoch seconds of the grid point at ``index``."""
        return self.first_timestamp + index * self.timestamp_interval


@dataclass(frozen=True)
class NormalizationParams:
    mean: float
    stdev: float


@dataclass(frozen=True)
class ProgressPoint:
    epoch: int
    confidence: float


@dataclass
class TrainProgress:
    """Confidence per epoch, appended to while a run is in flight."""
    points: list[ProgressPoint] = field(default_factory=list)
    end_epoch: int = TERMINAL_EPOCH

    @property
    def last_confidence(self) -> float:
        return self.points[-1].confidence if self.points else 0.0

    def copy(self) -> "TrainProgress":
        return TrainProgress(list(self.points), self.end_epoch)

    def to_record(self) -> dict[str, Any]:
        return {
            "confidencePoints": [
                {"x": p.epoch, "y": p.confidence} for p in self.points
            ],
            "endX": self.end_epoch,
        }


@dataclass(frozen=True)
class ForecastStep:
    """Rollout progress: percentage of the forecast horizon done."""
    index: int
    percent: float


@dataclass(frozen=True)
class ComparisonPoint:
    """
    One chart point. Historical points carry ``observed`` only and
    forecast points carry ``predicted`` only.
    """
    timestamp: datetime
    observed: Optional[float] = None
    predicted: Optional[float] = None

    def to_record(self) -> dict[str, Any]:
        return {
            "x": self.timestamp.isoformat(),
            "y0": self.observed,
            "y1": self.predicted,
        }


@dataclass(frozen=True)
class EvaluationReport:
    confidence: float
    points: tuple[ComparisonPoint, ...]
    high_peak: Optional[ComparisonPoint]
    low_peak: Optional[ComparisonPoint]

    @property
    def predictions(self) -> list[tuple[datetime, float]]:
        """(timestamp, predicted value) pairs kept for export."""
        return [
            (p.timestamp, p.predicted)
            for p in self.points if p.predicted is not None
        ]

    def to_record(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "graph": [p.to_record() for p in self.points],
            "highPeak": self.high_peak.to_record() if self.high_peak else None,
            "lowPeak": self.low_peak.to_record() if self.low_peak else None,
        }


@dataclass(frozen=True)
class SheetSummary:
    """Everything the UI needs to configure preprocessing of one sheet."""
    name: str
    tabs: Optional[list[str]]
    tab_name: Optional[str]
    columns: list[Column]
    rows: list[Row]
    allowed_periods: list[BatchPeriod]
    selected_datetime_column: Field
    selected_predictable_column: Field
    selected_period: BatchPeriod
    row_selection: RowSelection = RowSelection()
    warnings: tuple[str, ...] = ()
