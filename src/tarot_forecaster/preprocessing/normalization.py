# thirdpartylib
import numpy as np
# projectlib
from tarot_forecaster.data.schemas import HistoricalData, NormalizationParams
from tarot_forecaster.utils.typing import ArrayLike1D, FloatArray
from tarot_forecaster.utils.errors import DataQualityError


def fit_normalization(values: ArrayLike1D) -> NormalizationParams:
    """
    Mean and sample standard deviation (n - 1 divisor) of a corpus.

    Raises
    ------
    DataQualityError
        Fewer than two values, or a constant corpus whose standard
        deviation is zero.
    """
    flat = np.asarray(values, dtype=np.float64).reshape(-1)
    if flat.size < 2:
        raise DataQualityError(
            "At least two values are needed to normalize the data",
            title="Not Enough Data",
            recoverable=False,
        )
    mean = float(flat.mean())
    stdev = float(flat.std(ddof=1))
    if not np.isfinite(stdev) or stdev == 0.0:
        raise DataQualityError(
            "The selected column never changes, there is nothing to learn",
            title="Constant Data",
            recoverable=False,
        )
    return NormalizationParams(mean=mean, stdev=stdev)

def normalize(values: ArrayLike1D, params: NormalizationParams) -> FloatArray:
    """Z-score ``values`` with fitted parameters."""
    return (np.asarray(values, dtype=np.float64) - params.mean) / params.stdev

def denormalize(values: ArrayLike1D, params: NormalizationParams) -> FloatArray:
    """Reverse :func:`normalize`."""
    return np.asarray(values, dtype=np.float64) * params.stdev + params.mean


class Normalizer(object):
    """
    Z-score scaling fitted once over every value of every batch.

    The same parameters normalize the training corpus and, later,
    denormalize the forecast and the historical overlay.
    """

    def __init__(self, params: NormalizationParams) -> None:
        self.params = params

    @classmethod
    def fit(cls, history: HistoricalData) -> "Normalizer":
        return cls(fit_normalization(history.flatten()))

    def transform(self, values: ArrayLike1D) -> FloatArray:
        return normalize(values, self.params)

    def inverse_transform(self, values: ArrayLike1D) -> FloatArray:
        return denormalize(values, self.params)
