# stdlib
from typing import Optional, Sequence
# projectlib
from tarot_forecaster.data.schemas import ComparisonPoint

def confidence_score(avg_valid_loss: float, max_valid_loss: float) -> float:
    """
    Training confidence for one epoch.

    ``100 - avg_valid_loss * 100 / max_valid_loss`` where
    ``max_valid_loss`` is the worst average validation loss seen so far
    in the run, current epoch included. Since the current loss never
    exceeds that maximum, the score lies in ``[0, 100]``; a run whose
    validation loss has always been zero scores 100.

    Parameters
    ----------
    avg_valid_loss : float
        Mean validation loss of the current epoch.
    max_valid_loss : float
        Running maximum of the per-epoch mean validation loss.

    Returns
    -------
    float
        Confidence percentage.
    """
    if max_valid_loss <= 0.0:
        return 100.0
    return 100.0 - (avg_valid_loss * 100.0 / max_valid_loss)

def find_peaks(
        points: Sequence[ComparisonPoint]
    ) -> tuple[Optional[ComparisonPoint], Optional[ComparisonPoint]]:
    """
    Highest and lowest predicted points.

    Only points carrying a predicted value are scanned. Ties keep the
    first point that reached the extreme.
    """
    high: Optional[ComparisonPoint] = None
    low: Optional[ComparisonPoint] = None
    for point in points:
        value = point.predicted
        if value is None:
            continue
        if high is None or value > high.predicted:  # type: ignore[operator]
            high = point
        if low is None or value < low.predicted:  # type: ignore[operator]
            low = point
    return high, low
