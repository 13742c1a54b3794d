# stdlib
from datetime import tzinfo
from typing import Callable, Optional
# thirdpartylib
import numpy as np
import torch
# projectlib
from tarot_forecaster.data.schemas import (
    ComparisonPoint,
    EvaluationReport,
    ForecastStep,
    HistoricalData,
    NormalizationParams,
)
from tarot_forecaster.models.forecasting import LSTMRegressor
from tarot_forecaster.preprocessing.normalization import Normalizer
from tarot_forecaster.evaluation.metrics import find_peaks
from tarot_forecaster.utils.memory import MemoryAwareProcess
from tarot_forecaster.utils.clock import to_local
from tarot_forecaster.utils.logging import Logger
from tarot_forecaster.utils.errors import ComputationError
from tarot_forecaster.utils.typing import ArrayLike1D, FloatArray, Verbosity

# Longest forecast horizon, in grid points
MAX_PREDICT_LENGTH = 200


def forecast_horizon(history_length: int) -> int:
    """Half the history, capped at ``MAX_PREDICT_LENGTH`` points."""
    return min(history_length // 2, MAX_PREDICT_LENGTH)


class RollingWindow(object):
    """
    Fixed-capacity ring buffer of floats.

    ``push`` evicts the oldest value in O(1); ``view`` returns the
    values oldest first.
    """

    def __init__(self, values: ArrayLike1D) -> None:
        self._buffer = np.array(values, dtype=np.float64).reshape(-1)
        if self._buffer.size == 0:
            raise ValueError("A rolling window needs at least one value.")
        self._start = 0

    def __len__(self) -> int:
        return int(self._buffer.size)

    def push(self, value: float) -> None:
        # The slot of the oldest value becomes the newest
        self._buffer[self._start] = value
        self._start = (self._start + 1) % self._buffer.size

    def view(self) -> FloatArray:
        return np.concatenate(
            (self._buffer[self._start:], self._buffer[:self._start])
        )


class Forecaster(MemoryAwareProcess):
    """
    Roll a trained model forward past the end of the history.

    The last ``predict_length`` normalized historical values seed the
    window; every step predicts one value, records it, and pushes it
    into the window. Predictions and the historical tail are
    denormalized and merged into one chronological series of
    :class:`ComparisonPoint` on the history's time grid.

    Parameters
    ----------
    zone : tzinfo, optional
        Zone for point timestamps; ``None`` is the system local zone.
    on_step : callable, optional
        Called with a :class:`ForecastStep` after every prediction.
    """

    def __init__(
            self,
            zone: Optional[tzinfo] = None,
            *,
            device: str = "cpu",
            on_step: Optional[Callable[[ForecastStep], None]] = None,
            verbose: Verbosity = 0,
            logger: Optional[Logger] = None,
        ) -> None:
        super().__init__(verbose=verbose, logger=logger)
        self.zone = zone
        self.device = torch.device(device)
        self.on_step = on_step

    def rollout(self, model: LSTMRegressor, seed_window: FloatArray) -> FloatArray:
        """Predict ``len(seed_window)`` normalized values autoregressively."""
        window = RollingWindow(seed_window)
        predict_length = len(window)
        predictions = np.empty(predict_length, dtype=np.float64)
        model.eval()
        for index in range(predict_length):
            inputs = torch.tensor(
                window.view(), dtype=torch.float32, device=self.device
            )
            value = model.predict_next(inputs)
            if not np.isfinite(value):
                raise ComputationError(
                    f"Model produced a non-finite value at step {index}",
                    title="Forecast Failed",
                )
            predictions[index] = value
            window.push(value)
            if self.on_step is not None:
                self.on_step(ForecastStep(
                    index=index,
                    percent=index * 100.0 / predict_length,
                ))
        return predictions

    def _point_time(self, history: HistoricalData, index: int):
        # Grid points are true instants, so the local reading is never
        # ambiguous or skipped; only out-of-range instants are dropped
        try:
            return to_local(history.timestamp_at(index), self.zone)
        except (OverflowError, OSError, ValueError):
            return None

    def run(
            self,
            model: LSTMRegressor,
            params: NormalizationParams,
            history: HistoricalData,
            confidence: float = 0.0,
        ) -> EvaluationReport:
        """
        Forecast past ``history`` and assemble the evaluation report.

        Raises
        ------
        ComputationError
            History too short to forecast, or the model diverged.
        """
        normalizer = Normalizer(params)
        normalized = normalizer.transform(history.flatten())
        history_length = int(normalized.size)
        predict_length = forecast_horizon(history_length)
        if predict_length < 1:
            raise ComputationError(
                f"{history_length} historical points are too few to forecast",
                title="Forecast Failed",
            )
        predict_offset = history_length - predict_length
        self.logger(
            f"Forecasting {predict_length} points after {history_length} "
            "historical points",
            verbosity=1,
        )
        seed_window = normalized[predict_offset:]
        predicted = normalizer.inverse_transform(self.rollout(model, seed_window))
        observed = normalizer.inverse_transform(seed_window)

        points: list[ComparisonPoint] = []
        for offset, value in enumerate(observed):
            moment = self._point_time(history, predict_offset + offset)
            if moment is not None:
                points.append(
                    ComparisonPoint(timestamp=moment, observed=float(value))
                )
        for offset, value in enumerate(predicted):
            moment = self._point_time(history, history_length + offset)
            if moment is not None:
                points.append(
                    ComparisonPoint(timestamp=moment, predicted=float(value))
                )
        high_peak, low_peak = find_peaks(points)

        return EvaluationReport(
            confidence=confidence,
            points=tuple(points),
            high_peak=high_peak,
            low_peak=low_peak,
        )
