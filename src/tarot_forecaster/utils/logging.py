# stdlib
import threading
from pathlib import Path
from datetime import datetime
from typing import Optional
# projectlib
from tarot_forecaster.utils.paths import validate_address
from tarot_forecaster.utils.typing import Verbosity, Address

# Shared by every Logger so concurrent workers never interleave lines
_WRITE_LOCK = threading.Lock()


class Logger(object):
    """
    Lightweight callable logger with optional file persistence.

    Messages are filtered by verbosity, prefixed with a timestamp and
    the emitting component, and either printed to stdout or appended to
    ``log.txt`` inside ``log_dir``. Output is serialized across threads
    because training and forecasting log from worker threads while the
    coordinating thread keeps logging too.
    """

    def __init__(
        self,
        verbose: Verbosity = 0,
        log_dir: Address = Path.cwd(),
        write_log: bool = False,
        name: Optional[str] = None,
    ) -> None:
        """
        Initialize the logger.

        Parameters
        ----------
        verbose : Verbosity, default 0
            Verbosity threshold. Messages with a verbosity level less
            than or equal to this value will be emitted.
        log_dir : Address, default Path.cwd()
            Directory in which the log file will be written if
            `write_log` is True. The file name is fixed as `log.txt`.
        write_log : bool, default False
            If True, messages are appended to a log file. If False,
            messages are printed to stdout.
        name : str, optional
            Component name placed after the timestamp.
        """
        self.verbose = verbose
        self.name = name
        # Only a file-backed logger needs its directory to exist
        if write_log:
            log_dir = validate_address(log_dir, mkdir=True)
        self.log_path = Path(log_dir) / "log.txt"
        self.write_log = write_log

    def __call__(self, msg: str, verbosity: int = 0) -> None:
        """
        Emit a log message if the verbosity threshold is met.

        Parameters
        ----------
        msg : str
            Message to be logged.
        verbosity : int, default 0
            Verbosity level associated with the message. The message
            is emitted only if `self.verbose >= verbosity`.
        """
        if self.verbose >= verbosity:
            formatted = self._format(msg)
            with _WRITE_LOCK:
                if self.write_log:
                    self.write(formatted)
                else:
                    print(formatted, flush=True)

    def child(self, name: str) -> "Logger":
        """Return a logger sharing this configuration under a new name."""
        return Logger(self.verbose, self.log_path.parent, self.write_log, name)

    def write(self, msg: str) -> None:
        """Append a formatted message to the log file."""
        with open(self.log_path, "a", encoding="utf-8") as file:
            file.write(msg + "\n")

    def _format(self, msg: str) -> str:
        ts = datetime.now().isoformat(timespec="seconds")
        if self.name:
            return f"[{ts}] [{self.name}] {msg}"
        return f"[{ts}] {msg}"
