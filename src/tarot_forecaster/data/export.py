# stdlib
import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence
# thirdpartylib
import polars as pl
# projectlib
from tarot_forecaster.data.schemas import EvaluationReport, TrainProgress
from tarot_forecaster.utils.typing import Address
from tarot_forecaster.utils.paths import validate_address
from tarot_forecaster.utils.logging import Logger
from tarot_forecaster.utils.errors import TarotError

DATETIME_HEADER = "Date/Time"
VALUE_HEADER = "Predicted Value"


def predictions_frame(predictions: Sequence[tuple[datetime, float]]) -> pl.DataFrame:
    """
    Two-column export table: ISO-8601 timestamps with their UTC offset
    and predicted values.
    """
    return pl.DataFrame(
        {
            DATETIME_HEADER: [moment.isoformat() for moment, _ in predictions],
            VALUE_HEADER: [float(value) for _, value in predictions],
        },
        schema={DATETIME_HEADER: pl.String, VALUE_HEADER: pl.Float64},
    )

def write_predictions(
        address: Address,
        predictions: Sequence[tuple[datetime, float]],
        *,
        logger: Optional[Logger] = None,
    ) -> Path:
    """
    Save cached predictions as CSV, overwriting any existing file.

    The ``.csv`` extension is forced on the target path.

    Parameters
    ----------
    address : Address
        Target file path.
    predictions : Sequence[tuple[datetime, float]]
        ``(local datetime, predicted value)`` pairs in chronological
        order.
    logger : Logger, optional
        Receives the export path.

    Returns
    -------
    pathlib.Path
        The path actually written.

    Raises
    ------
    TarotError
        The target directory does not exist or the file cannot be
        written.
    """
    try:
        path = validate_address(address, extension=".csv", mode="w")
        predictions_frame(predictions).write_csv(path)
    except OSError as e:
        raise TarotError(str(e), title="Failed to Save Prediction") from e
    if logger is not None:
        logger(f"Saved {len(predictions)} predictions to {path}", verbosity=1)
    return path

def write_report(
        address: Address,
        report: EvaluationReport,
        progress: TrainProgress,
        *,
        logger: Optional[Logger] = None,
    ) -> Path:
    """
    Save the evaluation and training progress records as JSON,
    forcing the ``.json`` extension.
    """
    record = {
        "progress": progress.to_record(),
        "evaluation": report.to_record(),
    }
    try:
        path = validate_address(address, extension=".json", mode="w")
        with open(path, "w", encoding="utf-8") as file:
            json.dump(record, file, indent=2)
    except OSError as e:
        raise TarotError(str(e), title="Failed to Save Report") from e
    if logger is not None:
        logger(f"Saved evaluation report to {path}", verbosity=1)
    return path
