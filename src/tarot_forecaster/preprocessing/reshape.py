# stdlib
from dataclasses import dataclass
# thirdpartylib
import numpy as np
import torch
from torch import Tensor
# projectlib
from tarot_forecaster.utils.typing import FloatArray

# Share of batches, in index order, used for training (80%)
TRAIN_NUMERATOR, TRAIN_DENOMINATOR = 8, 10


def split_index(batch_count: int) -> int:
    """
    Index of the first validation batch.

    ``floor(batch_count * 0.8)`` clamped to ``[1, batch_count - 1]`` so
    both splits hold at least one batch whenever ``batch_count >= 2``.
    """
    if batch_count < 2:
        raise ValueError(
            f"At least 2 batches are needed to split, got {batch_count}."
        )
    slice_line = batch_count * TRAIN_NUMERATOR // TRAIN_DENOMINATOR
    return min(max(slice_line, 1), batch_count - 1)

def windows_and_targets(batches: FloatArray) -> tuple[FloatArray, FloatArray]:
    """
    Split every batch into its input window (all but the last value)
    and its target (the last value).

    Returns arrays shaped ``(n, window, 1)`` and ``(n, 1)``. Batches of a
    single value have no history; their window is one step holding the
    normalized mean (0.0).
    """
    batches = np.asarray(batches, dtype=np.float64)
    windows = batches[:, :-1]
    targets = batches[:, -1:]
    if windows.shape[1] == 0:
        windows = np.zeros((batches.shape[0], 1), dtype=np.float64)
    return windows[:, :, np.newaxis], targets


@dataclass(frozen=True)
class SequenceSplit:
    """Chronological train/validation tensors for sequence-to-one fits."""
    train_inputs: Tensor
    train_targets: Tensor
    valid_inputs: Tensor
    valid_targets: Tensor

    @property
    def train_count(self) -> int:
        return int(self.train_inputs.shape[0])

    @property
    def valid_count(self) -> int:
        return int(self.valid_inputs.shape[0])


class SequenceBatcher(object):
    """
    Turn normalized batches into (window, target) tensors and split them
    by index order, without shuffling.
    """

    def __init__(self, device: torch.device | str = "cpu") -> None:
        self.device = torch.device(device)

    def __tensor(self, values: FloatArray) -> Tensor:
        return torch.tensor(values, dtype=torch.float32, device=self.device)

    def split(self, normalized_batches: FloatArray) -> SequenceSplit:
        windows, targets = windows_and_targets(normalized_batches)
        slice_line = split_index(windows.shape[0])

        return SequenceSplit(
            train_inputs=self.__tensor(windows[:slice_line]),
            train_targets=self.__tensor(targets[:slice_line]),
            valid_inputs=self.__tensor(windows[slice_line:]),
            valid_targets=self.__tensor(targets[slice_line:]),
        )
