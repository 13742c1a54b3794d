# thirdpartylib
import torch
from torch import Tensor
from torch.nn import Module, LSTM, Linear


class LSTMRegressor(Module):
    """
    LSTM-based regressor for univariate sequence-to-one prediction.

    The network reads a window of normalized values and predicts the
    value that follows it from the final time step's hidden state. The
    same network is trained on batch windows and then rolled forward
    over the forecast window, so it accepts any window length.

    Parameters
    ----------
    hidden_size : int
        Number of hidden units in the LSTM layer.
    input_size : int, default 1
        Number of input features per time step.
    """
    def __init__(self, hidden_size: int, input_size: int = 1) -> None:
        super().__init__()  # pyright: ignore[reportUnknownMemberType]
        self.input_size = input_size
        self.hidden_size = hidden_size
        # Recurrent layer that processes the input sequence
        self.lstm = LSTM(
            input_size=input_size,
            hidden_size=hidden_size,
            batch_first=True,
        )
        # Linear projection from final hidden state to scalar output
        self.fc = Linear(hidden_size, 1)

    def forward(self, x: Tensor) -> Tensor:
        """
        Forward pass of the LSTM regressor.

        Parameters
        ----------
        x : torch.Tensor
            Input of shape ``(batch_size, sequence_length, input_size)``;
            a 2-D ``(batch_size, sequence_length)`` input is treated as a
            single feature.

        Returns
        -------
        torch.Tensor
            Output of shape ``(batch_size, 1)``.
        """
        if x.dim() == 2:
            x = x.unsqueeze(-1)
        out, _ = self.lstm(x)
        last = out[:, -1, :]
        return self.fc(last)

    @torch.no_grad()
    def predict_next(self, window: Tensor) -> float:
        """Predict the value following a single 1-D window."""
        return float(self(window.reshape(1, -1, self.input_size)).item())
