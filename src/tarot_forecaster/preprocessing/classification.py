# stdlib
import re
from datetime import datetime, date, time, tzinfo
from dataclasses import dataclass, field
from typing import Optional, Sequence
# thirdpartylib
import pandas as pd
# projectlib
from tarot_forecaster.data.schemas import (
    CellValue,
    Column,
    ColumnType,
    Row,
    RowID,
    ID_FIELD,
)
from tarot_forecaster.utils.typing import RawCell, RawGrid
from tarot_forecaster.utils.clock import localize
from tarot_forecaster.utils.errors import DataQualityError
from tarot_forecaster.utils.logging import Logger

# Fewest rows left after cleaning that still allow preprocessing
MIN_ROWS = 10
# A datetime string must contain at least one digit ("now", "today" and
# friends are rejected)
_HAS_DIGIT = re.compile(r"\d")
_BOOLEANS = {"true": True, "false": False}


def _parse_float(cell: str) -> Optional[float]:
    try:
        return float(cell)
    except ValueError:
        return None

def _parse_datetime(cell: str, zone: Optional[tzinfo]) -> Optional[datetime]:
    text = cell.strip()
    # Plain numbers are values, not dates
    if not _HAS_DIGIT.search(text) or _parse_float(text) is not None:
        return None
    try:
        stamp = pd.Timestamp(text)
    except (ValueError, OverflowError):
        return None
    if pd.isna(stamp):
        return None
    moment = stamp.to_pydatetime()
    if moment.tzinfo is None:
        return localize(moment, zone)
    return moment

def parse_cell(cell: str, zone: Optional[tzinfo] = None) -> CellValue:
    """
    Type a textual cell.

    Tries a datetime first, then a number, then a boolean, and keeps
    the text otherwise. Naive datetimes are local time; a wall time
    skipped by a daylight-saving jump stays a string.
    """
    moment = _parse_datetime(cell, zone)
    if moment is not None:
        return moment
    number = _parse_float(cell.strip())
    if number is not None:
        return number
    boolean = _BOOLEANS.get(cell.strip().lower())
    if boolean is not None:
        return boolean
    return cell

def type_cell(raw: RawCell, zone: Optional[tzinfo] = None) -> CellValue:
    """
    Type a cell coming from any source.

    Spreadsheet-native values keep their type: a bare date is combined
    with the current local time of day and a bare time with today's
    local date.
    """
    match raw:
        case None:
            return ""
        case bool():
            return raw
        case int() | float():
            return float(raw)
        case datetime():
            moment = localize(raw, zone)
            return moment if moment is not None else str(raw)
        case date():
            moment = localize(datetime.combine(raw, datetime.now().time()), zone)
            return moment if moment is not None else str(raw)
        case time():
            moment = localize(datetime.combine(date.today(), raw), zone)
            return moment if moment is not None else str(raw)
        case _:
            return parse_cell(str(raw), zone)


@dataclass
class ColumnCounter:
    string: int = 0
    number: int = 0
    datetime: int = 0
    boolean: int = 0

    def add(self, kind: ColumnType) -> None:
        match kind:
            case ColumnType.STRING:
                self.string += 1
            case ColumnType.NUMBER:
                self.number += 1
            case ColumnType.DATETIME:
                self.datetime += 1
            case ColumnType.BOOLEAN:
                self.boolean += 1

    def resolve(self) -> ColumnType:
        """
        Pick the column type with sequential overrides.

        Each comparison only looks at its neighbour, so a later step
        can override an earlier winner even when its own count is not
        the overall maximum: (s, n, d, b) = (5, 1, 2, 0) is DATETIME.
        """
        winner = ColumnType.STRING
        if self.string < self.number:
            winner = ColumnType.NUMBER
        if self.number < self.datetime:
            winner = ColumnType.DATETIME
        if self.datetime < self.boolean:
            winner = ColumnType.BOOLEAN
        return winner


@dataclass
class ClassificationResult:
    columns: list[Column]
    rows: list[Row]
    dropped_row_indices: list[int]
    warnings: list[str] = field(default_factory=list)

    def first_of(self, kind: ColumnType) -> Optional[Column]:
        return next((c for c in self.columns if c.column_type is kind), None)


class ColumnClassifier(object):
    """
    Infer column types of a raw grid and drop rows that disagree.

    Parameters
    ----------
    zone : tzinfo, optional
        Zone used to localize naive datetimes; ``None`` is the system
        local zone.
    logger : Logger, optional
        Receives the cleaning summary.
    """

    def __init__(
            self,
            zone: Optional[tzinfo] = None,
            logger: Optional[Logger] = None
        ) -> None:
        self.zone = zone
        self.logger = logger or Logger(name="ColumnClassifier")

    def type_grid(self, grid: RawGrid) -> list[list[CellValue]]:
        return [[type_cell(raw, self.zone) for raw in row] for row in grid]

    def resolve_types(
            self,
            column_count: int,
            cells: Sequence[Sequence[CellValue]]
        ) -> list[ColumnType]:
        counters = [ColumnCounter() for _ in range(column_count)]
        for row in cells:
            # Short rows simply contribute nothing for missing columns
            for counter, value in zip(counters, row):
                kind = ColumnType.of(value)
                if kind is not None:
                    counter.add(kind)
        return [counter.resolve() for counter in counters]

    def classify(
            self,
            header: Sequence[str],
            grid: RawGrid,
            *,
            source_label: str = "this CSV file"
        ) -> ClassificationResult:
        """
        Type every cell, resolve column types, and keep consistent rows.

        A row is kept only if it has a cell for every column and every
        cell matches its column's type. Kept rows gain a synthetic
        ``id`` field holding their original index.

        Raises
        ------
        DataQualityError
            No DATETIME column, no NUMBER column, or fewer than
            ``MIN_ROWS`` rows left after cleaning.
        """
        cells = self.type_grid(grid)
        column_types = self.resolve_types(len(header), cells)
        columns = [
            Column(
                field=name.lower(),
                header_name=name,
                column_type=kind,
            )
            for name, kind in zip(header, column_types)
        ]
        # Both a time axis and something to predict are required
        if not any(c.column_type is ColumnType.DATETIME for c in columns):
            raise DataQualityError(
                f"There is no Date/Time column in {source_label}"
            )
        if not any(c.column_type is ColumnType.NUMBER for c in columns):
            raise DataQualityError(
                f"There is no predictable column in {source_label}"
            )
        rows: list[Row] = []
        dropped: list[int] = []
        for index, row in enumerate(cells):
            is_row_ok = len(row) >= len(columns) and all(
                ColumnType.of(value) is column.column_type
                for column, value in zip(columns, row)
            )
            if not is_row_ok:
                dropped.append(index)
                continue
            record: Row = {
                column.field: value for column, value in zip(columns, row)
            }
            record[ID_FIELD] = RowID(index)
            rows.append(record)

        warnings: list[str] = []
        if len(rows) < MIN_ROWS:
            if dropped:
                msg = (
                    f"Only {len(dropped)} rows are unusable after data "
                    f"cleaning, left only {len(rows)} rows which is too few"
                )
                raise DataQualityError(msg, title="Inconsistent Data Type")
            raise DataQualityError(
                f"You selected only {len(rows)} rows, we need more than "
                f"(or equal) {MIN_ROWS} rows",
                title="Not Enough Rows",
            )
        if dropped:
            warnings.append(
                "Data cleaning was automatically done and there are "
                f"{len(dropped)} rows dropped because of inconsistent cell "
                "data type"
            )
            self.logger(warnings[-1], verbosity=0)
        self.logger(
            f"Classified {len(columns)} columns, kept {len(rows)} rows",
            verbosity=1,
        )
        return ClassificationResult(columns, rows, dropped, warnings)
