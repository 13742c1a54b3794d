# stdlib
import queue
import threading
from typing import Optional, Union, TypeAlias
# projectlib
from tarot_forecaster.config.env import PROGRESS_CAPACITY
from tarot_forecaster.data.schemas import ForecastStep, ProgressPoint
from tarot_forecaster.utils.logging import Logger

ProgressEvent: TypeAlias = Union[ProgressPoint, ForecastStep]


class ProgressChannel(object):
    """
    Bounded queue of progress events between workers and observers.

    Publishing never blocks: when the queue is full the oldest pending
    event is evicted to make room, and evictions are counted. Observers
    poll with :meth:`drain`.
    """

    def __init__(
            self,
            capacity: int = PROGRESS_CAPACITY,
            logger: Optional[Logger] = None
        ) -> None:
        if capacity < 1:
            raise ValueError(f"Capacity must be positive, got {capacity}.")
        self.capacity = capacity
        self.logger = logger or Logger(name="ProgressChannel")
        self.dropped = 0
        self._queue: queue.Queue[ProgressEvent] = queue.Queue(maxsize=capacity)
        # Eviction and insertion must happen as one step
        self._publish_lock = threading.Lock()

    def publish(self, event: ProgressEvent) -> None:
        with self._publish_lock:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                pass
            try:
                evicted = self._queue.get_nowait()
            except queue.Empty:
                evicted = None
            if evicted is not None:
                self.dropped += 1
                self.logger(
                    f"Progress channel full, dropped {evicted} "
                    f"({self.dropped} so far)",
                    verbosity=2,
                )
            self._queue.put_nowait(event)

    def drain(self) -> list[ProgressEvent]:
        """Remove and return every pending event, oldest first."""
        events: list[ProgressEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def clear(self) -> None:
        self.drain()
        self.dropped = 0

    def __len__(self) -> int:
        return self._queue.qsize()
