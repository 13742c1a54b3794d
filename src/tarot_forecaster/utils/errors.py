class TarotError(Exception):
    """
    Base error for the forecasting pipeline.

    Every error carries a short ``title`` suitable for a dialog heading
    next to its message, so callers can surface failures without
    formatting them again.
    """
    title = "Unexpected Error"

    def __init__(self, message: str, *, title: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if title is not None:
            self.title = title

    def __str__(self) -> str:
        return f"{self.title}: {self.message}"


class IngestionError(TarotError):
    """Source file cannot be found, opened, or read."""
    title = "Failed to Read Content"


class SessionLockError(TarotError):
    """Session state became inaccessible; the session was reset."""
    title = "State Inaccessible"
    fatal = True


class DataQualityError(TarotError):
    """
    Data is unusable for forecasting.

    ``recoverable`` tells the session whether a different selection
    (another sheet, period or row range) may fix the problem, in which
    case the session stays on its current step.
    """
    title = "Data is Incomplete"

    def __init__(
            self,
            message: str,
            *,
            title: str | None = None,
            recoverable: bool = True
        ) -> None:
        super().__init__(message, title=title)
        self.recoverable = recoverable


class ComputationError(TarotError):
    """Numeric stage failed; no partial result was committed."""
    title = "Computation Failed"


class StepError(TarotError):
    """Operation invoked before the session reached the required step."""
    title = "Operation Out of Order"


class BusyError(TarotError):
    """A training or forecasting run is already in progress."""
    title = "Session Busy"
