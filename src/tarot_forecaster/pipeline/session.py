# stdlib
import threading
from enum import IntEnum
from pathlib import Path
from datetime import datetime, tzinfo
from dataclasses import dataclass, field
from contextlib import contextmanager
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterator, Optional
from types import TracebackType
# projectlib
from tarot_forecaster.config.env import (
    HIDDEN_SIZE,
    LOCK_TIMEOUT,
    PROGRESS_CAPACITY,
    SEED,
    TIMEZONE,
    VERBOSITY,
)
from tarot_forecaster.data.schemas import (
    ColumnType,
    EvaluationReport,
    ForecastStep,
    HistoricalData,
    PreprocessConfig,
    ProgressPoint,
    SheetSummary,
    TrainProgress,
)
from tarot_forecaster.data.loaders import Open
from tarot_forecaster.data.export import write_predictions
from tarot_forecaster.preprocessing.classification import (
    ColumnClassifier,
    type_cell,
)
from tarot_forecaster.preprocessing.periods import allowed_periods, default_period
from tarot_forecaster.preprocessing.interpolation import BatchResampler
from tarot_forecaster.models.training import Trainer, TrainingResult
from tarot_forecaster.evaluation.forecast import Forecaster
from tarot_forecaster.pipeline.progress import ProgressChannel, ProgressEvent
from tarot_forecaster.utils.clock import resolve_zone, to_epoch
from tarot_forecaster.utils.logging import Logger
from tarot_forecaster.utils.typing import Address, Field, RawGrid, SeriesPair, Verbosity
from tarot_forecaster.utils.errors import (
    BusyError,
    DataQualityError,
    IngestionError,
    SessionLockError,
    StepError,
    TarotError,
)


class Step(IntEnum):
    """Session steps, numbered as the pages of the workflow."""
    EMPTY = 0
    LOADED = 1
    SHEET_SELECTED = 2
    PREPROCESSED = 3
    TRAINED = 4
    FORECASTED = 5


@dataclass
class SessionState:
    """Everything a session holds between operations."""
    step: Step = Step.EMPTY
    source: Optional[Open] = None
    tabs: Optional[list[str]] = None
    summary: Optional[SheetSummary] = None
    dropped_row_indices: frozenset[int] = frozenset()
    history: Optional[HistoricalData] = None
    trained: Optional[TrainingResult] = None
    trained_history: Optional[HistoricalData] = None
    progress: TrainProgress = field(default_factory=TrainProgress)
    report: Optional[EvaluationReport] = None
    prediction: Optional[list[tuple[datetime, float]]] = None
    busy: bool = False


class Session(object):
    """
    Single-owner forecasting session.

    The session walks through the steps of :class:`Step`: a source is
    loaded, a sheet is classified, a preprocessing configuration is
    resampled into history, a model is trained, and a forecast is made
    and exported. Operations called before their step raise
    :class:`StepError`.

    State is guarded by one lock held only to read or replace it.
    Training and forecasting run on a dedicated worker thread; only one
    run may be in flight (:class:`BusyError` otherwise), and results of
    a run outlived by a reset are discarded. Progress is published on a
    bounded :class:`ProgressChannel` and also accumulated for polling.

    Failure rules
    -------------
    - Ingestion errors reset the session, except those of a single
      spreadsheet sheet (unknown or unreadable sheet, missing header):
      the workbook stays loaded so another sheet can be selected.
    - Recoverable data errors keep the current step; the others reset.
    - Computation errors leave the session untouched.
    - A lock that times out, or that an unexpected exception escaped
      from, resets the session and raises :class:`SessionLockError`.

    Parameters
    ----------
    zone : str, optional
        IANA zone used for local calendar time; defaults to
        ``TAROT_TIMEZONE`` and then the system zone.
    hidden_size : int, default from ``TAROT_HIDDEN_SIZE``
        LSTM hidden units.
    seed : int, optional
        Seed for weight initialization, defaults to ``TAROT_SEED``.
    lock_timeout : float, default from ``TAROT_LOCK_TIMEOUT``
        Seconds to wait for the state lock.
    trainer_options : dict, optional
        Extra keyword arguments for :class:`Trainer` (epoch bounds).
    """

    def __init__(
            self,
            zone: Optional[str] = TIMEZONE,
            *,
            hidden_size: int = HIDDEN_SIZE,
            seed: Optional[int] = SEED,
            lock_timeout: float = LOCK_TIMEOUT,
            progress_capacity: int = PROGRESS_CAPACITY,
            trainer_options: Optional[dict] = None,
            verbose: Verbosity = VERBOSITY,
            logger: Optional[Logger] = None,
        ) -> None:
        self.verbose = verbose
        self.logger = logger or Logger(verbose, name="Session")
        self.zone: Optional[tzinfo] = resolve_zone(zone)
        self.hidden_size = hidden_size
        self.seed = seed
        self.lock_timeout = lock_timeout
        self.trainer_options = dict(trainer_options or {})
        self.progress = ProgressChannel(
            progress_capacity, logger=self.logger.child("ProgressChannel")
        )
        self.classifier = ColumnClassifier(
            self.zone, logger=self.logger.child("ColumnClassifier")
        )
        self.resampler = BatchResampler(logger=self.logger.child("BatchResampler"))
        self._state = SessionState()
        self._lock = threading.Lock()
        self._poisoned = False
        self._generation = 0
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="tarot-worker"
        )

    # ── state access ─────────────────────────────────────────────────

    def _reset_state(self) -> None:
        self._state = SessionState()
        self._generation += 1
        self.progress.clear()

    @contextmanager
    def _locked(self) -> Iterator[SessionState]:
        lock = self._lock
        if not lock.acquire(timeout=self.lock_timeout):
            # The holder never returned; abandon its lock with the state
            self._lock = threading.Lock()
            self._poisoned = False
            self._reset_state()
            self.logger("Session lock timed out, session was reset", 0)
            raise SessionLockError(
                f"Session lock was not released within {self.lock_timeout}s"
            )
        try:
            if self._poisoned:
                self._poisoned = False
                self._reset_state()
                self.logger("Session lock was poisoned, session was reset", 0)
                raise SessionLockError(
                    "A previous operation failed while holding the session"
                )
            yield self._state
        except TarotError:
            raise
        except Exception:
            self._poisoned = True
            raise
        finally:
            lock.release()

    def _fail(self, error: TarotError, generation: int) -> None:
        """Apply the reset rule of an error's category."""
        must_reset = isinstance(error, IngestionError) or (
            isinstance(error, DataQualityError) and not error.recoverable
        )
        self.logger(str(error), verbosity=0)
        if not must_reset:
            return
        with self._locked():
            if generation == self._generation:
                self._reset_state()

    def _require(self, state: SessionState, *steps: Step) -> None:
        if state.step not in steps:
            names = ", ".join(s.name for s in steps)
            raise StepError(
                f"Expected the session to be at {names}, "
                f"it is at {state.step.name}"
            )

    def _require_idle(self, state: SessionState) -> None:
        if state.busy:
            raise BusyError("Wait for the current run to finish")

    @property
    def step(self) -> Step:
        with self._locked() as state:
            return state.step

    @property
    def summary(self) -> Optional[SheetSummary]:
        with self._locked() as state:
            return state.summary

    @property
    def tabs(self) -> Optional[list[str]]:
        with self._locked() as state:
            return None if state.tabs is None else list(state.tabs)

    def reset(self) -> None:
        """Discard everything and return to the first step."""
        with self._locked():
            self._reset_state()
        self.logger("Session reset", verbosity=1)

    # ── data ─────────────────────────────────────────────────────────

    def _summarize(
            self,
            source: Open,
            tabs: Optional[list[str]],
            tab_name: Optional[str],
        ) -> tuple[SheetSummary, frozenset[int]]:
        header, grid = source.read(tab_name)
        label = "this CSV file" if tab_name is None else f"sheet {tab_name!r}"
        result = self.classifier.classify(header, grid, source_label=label)
        periods = allowed_periods(result.columns, result.rows)
        datetime_column = result.first_of(ColumnType.DATETIME)
        predictable_column = result.first_of(ColumnType.NUMBER)
        assert datetime_column is not None and predictable_column is not None
        summary = SheetSummary(
            name=source.name,
            tabs=tabs,
            tab_name=tab_name,
            columns=result.columns,
            rows=result.rows,
            allowed_periods=periods,
            selected_datetime_column=datetime_column.field,
            selected_predictable_column=predictable_column.field,
            selected_period=default_period(periods),
            warnings=tuple(result.warnings),
        )
        return summary, frozenset(result.dropped_row_indices)

    def load(self, path: Address) -> SheetSummary:
        """
        Open a new source, discarding the previous session.

        CSV files are classified right away. Spreadsheets list their
        sheets and the first one is selected; if it cannot be used the
        session stays loaded so another sheet can be picked, and the
        error is raised.
        """
        with self._locked():
            self._reset_state()
            generation = self._generation
        summary: Optional[SheetSummary] = None
        dropped: frozenset[int] = frozenset()
        try:
            source = Open(
                path, verbose=self.verbose, logger=self.logger.child("Open")
            )
            tabs = source.sheet_names()
            if tabs is None:
                summary, dropped = self._summarize(source, None, None)
            elif not tabs:
                raise IngestionError(
                    f"{source.name} has no sheets", title="Cannot Read Worksheet"
                )
        except TarotError as e:
            # Nothing was committed, the session is still empty
            self.logger(str(e), verbosity=0)
            raise

        with self._locked() as state:
            if generation != self._generation:
                raise StepError("Session was reset while the source was loading")
            state.source = source
            state.tabs = tabs
            if tabs is None:
                state.summary = summary
                state.dropped_row_indices = dropped
                state.step = Step.SHEET_SELECTED
            else:
                state.step = Step.LOADED
        self.logger(f"Loaded {source.name}", verbosity=1)
        if tabs is None:
            assert summary is not None
            return summary
        return self.select_sheet(tabs[0])

    def select_sheet(self, tab_name: str) -> SheetSummary:
        """Classify one sheet of a spreadsheet source."""
        with self._locked() as state:
            self._require(
                state, Step.LOADED, Step.SHEET_SELECTED,
                Step.PREPROCESSED, Step.TRAINED, Step.FORECASTED,
            )
            self._require_idle(state)
            source, tabs = state.source, state.tabs
            generation = self._generation
        assert source is not None
        if tabs is None:
            raise StepError("CSV files have no sheets to select")
        if tab_name not in tabs:
            raise IngestionError(
                f"{tab_name!r} is not a sheet of {source.name}",
                title="Cannot Read Worksheet",
            )
        try:
            summary, dropped = self._summarize(source, tabs, tab_name)
        except IngestionError as e:
            # Other sheets of the workbook may still be readable
            self.logger(str(e), verbosity=0)
            raise
        except TarotError as e:
            self._fail(e, generation)
            raise

        with self._locked() as state:
            if generation != self._generation:
                raise StepError("Session was reset while the sheet was read")
            state.summary = summary
            state.dropped_row_indices = dropped
            state.history = None
            state.trained = None
            state.trained_history = None
            state.report = None
            state.prediction = None
            state.step = Step.SHEET_SELECTED
        return summary

    # ── preprocessing ────────────────────────────────────────────────

    def _column_index(self, header: list[str], column: Field, role: str) -> int:
        for index, name in enumerate(header):
            if name.lower() == column:
                return index
        raise DataQualityError(
            f"{role} column suddenly gone in this file",
            title="Selected Data just Modified",
        )

    def replay(
            self,
            header: list[str],
            grid: RawGrid,
            config: PreprocessConfig,
            dropped: frozenset[int],
        ) -> list[SeriesPair]:
        """
        Extract ``(epoch seconds, value)`` pairs from a fresh read.

        Rows dropped by classification and rows left out by the row
        selection are skipped, as are rows whose cells no longer parse.
        """
        datetime_index = self._column_index(
            header, config.datetime_column, "Date/time"
        )
        value_index = self._column_index(
            header, config.predictable_column, "Predictable"
        )
        width = max(datetime_index, value_index)
        pairs: list[SeriesPair] = []
        for index, row in enumerate(grid):
            if index in dropped or not config.row_selection.keeps(index):
                continue
            if len(row) <= width:
                continue
            moment = type_cell(row[datetime_index], self.zone)
            value = type_cell(row[value_index], self.zone)
            if not isinstance(moment, datetime) or not isinstance(value, float):
                continue
            epoch = to_epoch(moment, self.zone)
            if epoch is not None:
                pairs.append((epoch, value))
        return pairs

    def preprocess(self, config: PreprocessConfig) -> HistoricalData:
        """
        Resample the selected columns into historical batches.

        Raises
        ------
        DataQualityError
            A column vanished or fewer than two batches fit; the
            session keeps its step.
        ComputationError
            Nothing to resample or the spline failed.
        """
        with self._locked() as state:
            self._require(
                state, Step.SHEET_SELECTED, Step.PREPROCESSED,
                Step.TRAINED, Step.FORECASTED,
            )
            self._require_idle(state)
            source, summary = state.source, state.summary
            dropped = state.dropped_row_indices
            generation = self._generation
        assert source is not None and summary is not None
        tab_name = config.tab_name if config.tab_name is not None else summary.tab_name
        try:
            if source.is_spreadsheet and tab_name is None:
                raise DataQualityError(
                    "Because tab name is missing while loading spreadsheet"
                )
            header, grid = source.read(tab_name if source.is_spreadsheet else None)
            pairs = self.replay(header, grid, config, dropped)
            self.logger(
                f"Replayed {len(pairs)} observations from {source.name}",
                verbosity=1,
            )
            history = self.resampler.run(pairs, config.batch_period)
        except TarotError as e:
            self._fail(e, generation)
            raise

        with self._locked() as state:
            if generation != self._generation:
                raise StepError("Session was reset while preprocessing")
            state.history = history
            state.trained = None
            state.trained_history = None
            state.report = None
            state.prediction = None
            state.step = Step.PREPROCESSED
        return history

    # ── training ─────────────────────────────────────────────────────

    def _record_epoch(self, generation: int, point: ProgressPoint) -> None:
        with self._locked() as state:
            if generation != self._generation:
                return
            state.progress.points.append(point)
        self.progress.publish(point)

    def _publish_step(self, generation: int, step: ForecastStep) -> None:
        if generation == self._generation:
            self.progress.publish(step)

    def _release(self, generation: int) -> None:
        """Clear the busy flag of a failed run that was not reset away."""
        with self._locked() as state:
            if generation == self._generation:
                state.busy = False

    def _train(self, history: HistoricalData, generation: int) -> TrainingResult:
        try:
            trainer = Trainer(
                self.hidden_size,
                seed=self.seed,
                on_progress=lambda point: self._record_epoch(generation, point),
                verbose=self.verbose,
                logger=self.logger.child("Trainer"),
                **self.trainer_options,
            )
            with trainer:
                result = trainer.fit(history)
        except TarotError as e:
            self._release(generation)
            self._fail(e, generation)
            raise
        except Exception:
            self._release(generation)
            raise

        with self._locked() as state:
            if generation != self._generation:
                raise StepError("Session was reset during training")
            state.trained = result
            state.trained_history = history
            state.history = None
            state.report = None
            state.prediction = None
            state.step = Step.TRAINED
            state.busy = False
        return result

    def start_training(self) -> Future[TrainingResult]:
        """
        Start training on the worker thread.

        Epoch progress is appended to :meth:`get_train_progress` and
        published on :attr:`progress`. The returned future raises the
        run's error, if any.
        """
        with self._locked() as state:
            self._require(state, Step.PREPROCESSED, Step.TRAINED)
            self._require_idle(state)
            history = state.history if state.history is not None else state.trained_history
            if history is None:
                raise StepError("There is no preprocessed data to train on")
            state.busy = True
            generation = self._generation
        self.logger("Training started", verbosity=1)
        return self._executor.submit(self._train, history, generation)

    def train(self) -> TrainingResult:
        """Train and wait for the result."""
        return self.start_training().result()

    def get_train_progress(self) -> TrainProgress:
        """Copy of every confidence point recorded since the last reset."""
        with self._locked() as state:
            return state.progress.copy()

    def drain_progress(self) -> list[ProgressEvent]:
        return self.progress.drain()

    @property
    def busy(self) -> bool:
        with self._locked() as state:
            return state.busy

    # ── forecasting ──────────────────────────────────────────────────

    def _forecast(
            self,
            trained: TrainingResult,
            history: HistoricalData,
            confidence: float,
            generation: int,
        ) -> EvaluationReport:
        try:
            forecaster = Forecaster(
                self.zone,
                on_step=lambda step: self._publish_step(generation, step),
                verbose=self.verbose,
                logger=self.logger.child("Forecaster"),
            )
            with forecaster:
                report = forecaster.run(
                    trained.model, trained.params, history, confidence
                )
        except TarotError as e:
            self._release(generation)
            self._fail(e, generation)
            raise
        except Exception:
            self._release(generation)
            raise

        with self._locked() as state:
            if generation != self._generation:
                raise StepError("Session was reset during forecasting")
            # The model is not needed once its predictions are cached
            state.trained = None
            state.trained_history = None
            state.report = report
            state.prediction = report.predictions
            state.step = Step.FORECASTED
            state.busy = False
        return report

    def start_forecast(self) -> Future[EvaluationReport]:
        """Start forecasting with the trained model on the worker thread."""
        with self._locked() as state:
            self._require(state, Step.TRAINED)
            self._require_idle(state)
            trained, history = state.trained, state.trained_history
            if trained is None or history is None:
                raise StepError("There is no trained model to forecast with")
            confidence = state.progress.last_confidence
            state.busy = True
            generation = self._generation
        self.logger("Forecast started", verbosity=1)
        return self._executor.submit(
            self._forecast, trained, history, confidence, generation
        )

    def evaluate(self) -> EvaluationReport:
        """Forecast and wait for the report."""
        return self.start_forecast().result()

    @property
    def report(self) -> Optional[EvaluationReport]:
        with self._locked() as state:
            return state.report

    def save_prediction(self, path: Address) -> Path:
        """Export the cached predictions as CSV."""
        with self._locked() as state:
            prediction = state.prediction
        if prediction is None:
            raise StepError("There is no prediction to save yet")
        return write_predictions(path, prediction, logger=self.logger)

    # ── lifecycle ────────────────────────────────────────────────────

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "Session":
        return self

    def __exit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
        ) -> bool:
        self.close()
        return False
