# stdlib
import sys
import time
import argparse
from pathlib import Path
from concurrent.futures import Future
from typing import Any, Optional
# thirdpartylib
import matplotlib.pyplot as plt
from tqdm import tqdm
# projectlib
from tarot_forecaster.config.env import LOG_DIR, SEED, VERBOSITY
from tarot_forecaster.data.schemas import (
    BatchPeriod,
    EvaluationReport,
    PreprocessConfig,
    ProgressPoint,
    SheetSummary,
    TERMINAL_EPOCH,
)
from tarot_forecaster.data.export import write_report
from tarot_forecaster.pipeline.session import Session
from tarot_forecaster.utils.logging import Logger
from tarot_forecaster.utils.errors import TarotError
from tarot_forecaster.visualization.timeseries import (
    plot_evaluation,
    use_dark_theme,
)

# Seconds between progress polls
POLL_INTERVAL = 0.1


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse input arguments for forecasting a table."""
    parser = argparse.ArgumentParser(
        description="Train an LSTM on a historical table and forecast it",
    )
    parser.add_argument(
        "--source",
        type=Path,
        required=True,
        help="CSV or spreadsheet (xlsx, xls, xlsb, ods) to forecast.",
    )
    parser.add_argument(
        "--sheet",
        type=str,
        default=None,
        help="Spreadsheet sheet to use, defaults to the first one.",
    )
    parser.add_argument(
        "--datetime-column",
        type=str,
        default=None,
        help="Date/time column, defaults to the first one detected.",
    )
    parser.add_argument(
        "--value-column",
        type=str,
        default=None,
        help="Column to predict, defaults to the first numeric one.",
    )
    parser.add_argument(
        "--period",
        type=str,
        default=None,
        choices=[p.value for p in BatchPeriod],
        help="Batch period, defaults to the suggested one.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="CSV file receiving the predicted values.",
    )
    parser.add_argument(
        "--plot",
        type=Path,
        default=None,
        help="Image file receiving the forecast chart.",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        help="JSON file receiving the evaluation and progress records.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=SEED,
        help="Seed for weight initialization, random if omitted.",
    )
    parser.add_argument(
        "--verbosity",
        type=int,
        default=VERBOSITY,
        choices=(0, 1, 2),
        help=(
            "Verbosity level: "
            "0 = silent, "
            "1 = info, "
            "2 = debug"
        ),
    )
    parser.add_argument(
        "--write-log",
        action="store_true",
        help="Append messages to log.txt instead of printing them.",
    )

    return parser.parse_args(argv)

def build_config(args: argparse.Namespace, summary: SheetSummary) -> PreprocessConfig:
    """Preprocessing configuration from arguments and sheet defaults."""
    datetime_column = args.datetime_column or summary.selected_datetime_column
    value_column = args.value_column or summary.selected_predictable_column
    period = BatchPeriod(args.period) if args.period else summary.selected_period

    return PreprocessConfig(
        datetime_column=datetime_column.lower(),
        predictable_column=value_column.lower(),
        batch_period=period,
        row_selection=summary.row_selection,
        tab_name=summary.tab_name,
    )

def follow_training(session: Session, future: Future[Any]) -> None:
    """Mirror epoch progress on a progress bar until training ends."""
    with tqdm(total=TERMINAL_EPOCH, desc="Training", unit="epoch") as bar:
        def advance() -> None:
            for event in session.drain_progress():
                if isinstance(event, ProgressPoint):
                    bar.update(event.epoch - bar.n)
                    bar.set_postfix(confidence=f"{event.confidence:.2f}")
        while not future.done():
            advance()
            time.sleep(POLL_INTERVAL)
        advance()

def save_plot(report: EvaluationReport, address: Path) -> None:
    use_dark_theme()
    ax = plot_evaluation(report)
    ax.figure.savefig(address, bbox_inches="tight") # pyright: ignore
    plt.close(ax.figure) # pyright: ignore

def forecast_pipeline(args: argparse.Namespace) -> EvaluationReport:
    """Load, preprocess, train, forecast, and export one source."""
    log = Logger(args.verbosity, LOG_DIR, args.write_log, name="forecast")
    with Session(seed=args.seed, verbose=args.verbosity, logger=log) as session:
        summary = session.load(args.source)
        for warning in summary.warnings:
            log(warning, 0)
        if args.sheet is not None and args.sheet != summary.tab_name:
            summary = session.select_sheet(args.sheet)
        config = build_config(args, summary)
        log(
            f"Forecasting {config.predictable_column!r} over "
            f"{config.datetime_column!r}, {config.batch_period} batches",
            1,
        )
        session.preprocess(config)
        future = session.start_training()
        follow_training(session, future)
        result = future.result()
        log(f"Training stopped at epoch {result.epochs}", 1)
        report = session.evaluate()
        log(f"Confidence: {report.confidence:.2f}%", 0)
        if args.output is not None:
            session.save_prediction(args.output)
        if args.plot is not None:
            save_plot(report, args.plot)
        if args.report is not None:
            write_report(
                args.report, report, session.get_train_progress(), logger=log
            )

    return report

def main(argv: Optional[list[str]] = None) -> int:
    """
    Entry point for forecasting a table from the command line.

    Returns the process exit status: 0 on success, 1 when any stage
    fails with a user-facing error.
    """
    args = parse_args(argv)
    try:
        forecast_pipeline(args)
    except TarotError as e:
        print(f"{e.title}: {e.message}", file=sys.stderr)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
