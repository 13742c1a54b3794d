# stdlib
from typing import Optional
# thirdpartylib
import polars as pl
import fastexcel
# projectlib
from tarot_forecaster.utils.typing import Address, Verbosity, RawGrid
from tarot_forecaster.utils.memory import MemoryAwareProcess
from tarot_forecaster.utils.paths import validate_address
from tarot_forecaster.utils.logging import Logger
from tarot_forecaster.utils.errors import IngestionError

CSV_EXTENSIONS = (".csv",)
SHEET_EXTENSIONS = (".xlsx", ".xls", ".xlsb", ".ods")


class Open(MemoryAwareProcess):
    """
    Read historical tables from CSV files or spreadsheets with polars.

    The instance is the session's ingestion handle: it is created once
    per picked file and re-read whenever a sheet is (re)classified or a
    preprocessing configuration is submitted, so replays always see the
    same rows in the same order.
    """

    def __init__(self, source: Address, verbose: Verbosity = 0,
                 logger: Optional[Logger] = None) -> None:
        super().__init__(verbose=verbose, logger=logger)
        try:
            self.source = validate_address(
                source,
                allowed=CSV_EXTENSIONS + SHEET_EXTENSIONS,
            )
        except ValueError as e:
            raise IngestionError(str(e), title="File Type Unsupported") from e
        except (FileNotFoundError, NotADirectoryError) as e:
            raise IngestionError(str(e), title="Cannot Open File") from e
        self.is_spreadsheet = self.source.suffix.lower() in SHEET_EXTENSIONS

    @property
    def name(self) -> str:
        return self.source.name or "(unknown)"

    def sheet_names(self) -> Optional[list[str]]:
        """Sheet names of a spreadsheet, ``None`` for CSV files."""
        if not self.is_spreadsheet:
            return None
        try:
            return list(fastexcel.read_excel(self.source).sheet_names)
        except Exception as e:
            raise IngestionError(
                str(e),
                title=f"Failed to Read {self.source.suffix.lstrip('.').upper()} File",
            ) from e

    def read(self, tab_name: Optional[str] = None) -> tuple[list[str], RawGrid]:
        """
        Return the header and the body rows of the source.

        CSV cells are read as strings without schema inference.
        Spreadsheet cells keep their native types (numbers, booleans,
        dates, datetimes, times); empty cells become ``None``.
        """
        if self.is_spreadsheet:
            frame = self.__read_sheet(tab_name)
        else:
            frame = self.__read_csv()
        header = list(frame.columns)
        if not header:
            raise IngestionError(
                f"{self.name} has no header row.",
                title="Cannot Read Header",
            )
        rows = frame.rows()
        self.logger(
            f"Read {len(rows)} rows x {len(header)} columns from {self.name}",
            verbosity=1,
        )
        return header, rows

    def __read_csv(self) -> pl.DataFrame:
        try:
            # All columns as strings; typing happens during classification
            return pl.read_csv(
                self.source,
                infer_schema_length=0,
                truncate_ragged_lines=True,
            )
        except pl.exceptions.NoDataError as e:
            raise IngestionError(str(e), title="Cannot Read Header") from e
        except Exception as e:
            raise IngestionError(str(e), title="Failed to Read CSV File") from e

    def __read_sheet(self, tab_name: Optional[str]) -> pl.DataFrame:
        if tab_name is None:
            raise IngestionError(
                "Because tab name is missing while loading spreadsheet",
                title="Data is Incomplete",
            )
        try:
            return pl.read_excel(
                self.source,
                sheet_name=tab_name,
                engine="calamine",
            )
        except Exception as e:
            raise IngestionError(str(e), title="Cannot Read Worksheet") from e