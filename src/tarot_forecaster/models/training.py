# stdlib
import math
import secrets
from dataclasses import dataclass, field
from typing import Callable, Optional
# thirdpartylib
import torch
import torch.nn as nn
# projectlib
from tarot_forecaster.config.env import HIDDEN_SIZE
from tarot_forecaster.data.schemas import (
    HistoricalData,
    NormalizationParams,
    ProgressPoint,
    TERMINAL_EPOCH,
)
from tarot_forecaster.models.forecasting import LSTMRegressor
from tarot_forecaster.preprocessing.normalization import Normalizer
from tarot_forecaster.preprocessing.reshape import SequenceBatcher
from tarot_forecaster.evaluation.metrics import confidence_score
from tarot_forecaster.utils.memory import MemoryAwareProcess
from tarot_forecaster.utils.logging import Logger
from tarot_forecaster.utils.errors import ComputationError
from tarot_forecaster.utils.typing import Verbosity

# Early stopping needs both a confident epoch and this many epochs done
MIN_EPOCHS = 250
STOP_CONFIDENCE = 98.0
LEARNING_RATE = 1e-3
MAX_GRAD_NORM = 1.0


@dataclass
class TrainingResult:
    """Final weights of a run with everything needed to forecast."""
    model: LSTMRegressor
    params: NormalizationParams
    progress: list[ProgressPoint] = field(default_factory=list)
    stopped_early: bool = False
    seed: int = 0

    @property
    def epochs(self) -> int:
        return self.progress[-1].epoch if self.progress else 0

    @property
    def last_confidence(self) -> float:
        return self.progress[-1].confidence if self.progress else 0.0


class Trainer(MemoryAwareProcess):
    """
    Fit an :class:`LSTMRegressor` to resampled history.

    Each epoch runs one full-batch gradient step on the training split
    (MSE loss, gradients clipped to a global norm of 1.0, Adam at a
    fixed learning rate), then scores the validation split. The
    validation loss is turned into a confidence against the worst loss
    seen so far in the run; training stops once confidence exceeds 98
    after at least 250 epochs, or after ``max_epochs``. Only the final
    weights are kept.

    Parameters
    ----------
    hidden_size : int, default from ``TAROT_HIDDEN_SIZE``
        LSTM hidden units.
    max_epochs : int, default 500
        Terminal epoch bound.
    min_epochs : int, default 250
        Earliest epoch at which early stopping may trigger.
    stop_confidence : float, default 98.0
        Confidence that must be exceeded to stop early.
    seed : int, optional
        Seed for weight initialization. ``None`` draws a fresh one per
        run.
    on_progress : callable, optional
        Called with every :class:`ProgressPoint` as it is produced.
    """

    def __init__(
            self,
            hidden_size: int = HIDDEN_SIZE,
            *,
            max_epochs: int = TERMINAL_EPOCH,
            min_epochs: int = MIN_EPOCHS,
            stop_confidence: float = STOP_CONFIDENCE,
            learning_rate: float = LEARNING_RATE,
            max_grad_norm: float = MAX_GRAD_NORM,
            seed: Optional[int] = None,
            device: str = "cpu",
            on_progress: Optional[Callable[[ProgressPoint], None]] = None,
            verbose: Verbosity = 0,
            logger: Optional[Logger] = None,
        ) -> None:
        super().__init__(verbose=verbose, logger=logger)
        self.hidden_size = hidden_size
        self.max_epochs = max_epochs
        self.min_epochs = min_epochs
        self.stop_confidence = stop_confidence
        self.learning_rate = learning_rate
        self.max_grad_norm = max_grad_norm
        self.seed = seed
        self.device = torch.device(device)
        self.on_progress = on_progress

    def _init_model(self, seed: int) -> LSTMRegressor:
        # Seed a private RNG stream so other threads keep their own
        with torch.random.fork_rng(devices=[]):
            torch.manual_seed(seed)
            model = LSTMRegressor(hidden_size=self.hidden_size)
        return model.to(self.device)

    def fit(self, history: HistoricalData) -> TrainingResult:
        """
        Train a fresh model on ``history``.

        Raises
        ------
        DataQualityError
            History is constant and cannot be normalized.
        ComputationError
            The training loss stops being finite.
        """
        normalizer = Normalizer.fit(history)
        split = SequenceBatcher(self.device).split(
            normalizer.transform(history.batches)
        )
        seed = self.seed if self.seed is not None else secrets.randbits(63)
        model = self._init_model(seed)
        criterion = nn.MSELoss()
        optimizer = torch.optim.Adam(model.parameters(), lr=self.learning_rate)
        self.logger(
            f"Training on {split.train_count} batches, validating on "
            f"{split.valid_count} (seed={seed})",
            verbosity=1,
        )
        self.get_available_memory()

        result = TrainingResult(model=model, params=normalizer.params, seed=seed)
        max_valid_loss = 0.0
        for epoch in range(1, self.max_epochs + 1):
            # Training phase
            model.train()
            optimizer.zero_grad()
            loss = criterion(model(split.train_inputs), split.train_targets)
            if not torch.isfinite(loss):
                raise ComputationError(
                    f"Training loss diverged at epoch {epoch}",
                    title="Training Failed",
                )
            loss.backward()
            nn.utils.clip_grad_norm_(model.parameters(), self.max_grad_norm)
            optimizer.step()  # pyright: ignore[reportUnknownMemberType]
            # Validation phase
            model.eval()
            with torch.no_grad():
                avg_valid_loss = float(
                    criterion(model(split.valid_inputs), split.valid_targets)
                )
            if not math.isfinite(avg_valid_loss):
                raise ComputationError(
                    f"Validation loss diverged at epoch {epoch}",
                    title="Training Failed",
                )
            max_valid_loss = max(max_valid_loss, avg_valid_loss)
            point = ProgressPoint(
                epoch=epoch,
                confidence=confidence_score(avg_valid_loss, max_valid_loss),
            )
            result.progress.append(point)
            self.logger(
                f"epoch={epoch} train_mse={loss.item():.6f} "
                f"valid_mse={avg_valid_loss:.6f} "
                f"confidence={point.confidence:.2f}",
                verbosity=2,
            )
            if self.on_progress is not None:
                self.on_progress(point)
            if point.confidence > self.stop_confidence and epoch >= self.min_epochs:
                result.stopped_early = True
                break

        model.eval()
        self.logger(
            f"Training finished after {result.epochs} epochs "
            f"(confidence {result.last_confidence:.2f}, "
            f"early stop: {result.stopped_early})",
            verbosity=1,
        )
        return result
