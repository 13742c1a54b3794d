# stdlib
import os
import gc
from typing import Optional
from types import TracebackType
from pathlib import Path
# thirdpartylib
import psutil
# projectlib
from tarot_forecaster.utils.typing import Verbosity, Address, SizeUnit
from tarot_forecaster.utils.logging import Logger

class MemoryAwareProcess(object):
    """
    Parent class for memory intensive processes, meant for improving
    memory efficiency and handling.

    Subclasses are used as context managers; leaving the context runs
    garbage collection and reports resident memory so that tensors and
    models released by a run are reclaimed before the next one starts.
    """
    def __init__(self, verbose: Verbosity = 0,
                 log_address: Address = Path.cwd(),
                 write_log: bool = False,
                 logger: Optional[Logger] = None) -> None:
        self.verbose = verbose
        if logger is None:
            logger = Logger(verbose, log_address, write_log,
                            name=type(self).__name__)
        self.logger = logger

    def __enter__(self):
        self._get_memory_usage(verbosity=2)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType]
    ) -> bool:
        self.clean_up_memory()
        # return False to re-raise exceptions (default behavior)
        return False

    def __unit_mapping(self, var: float, unit: SizeUnit) -> float:
        """Map byte measurements to preffered unit size."""
        map = {
            "b": 1,
            "kb": 1024,
            "mb": 1048576,
            "gb": 1073741824,
            "tb": 1099511627776,
        }
        if unit not in map.keys():
            msg = f"Invalid unit {unit}. Choose from 'b', 'kb', 'mb', 'gb', 'tb'."
            raise ValueError(msg)

        return var / map[unit]

    def _get_memory_usage(self, returns: bool = False,
                          verbosity: Verbosity = 0,
                          unit: SizeUnit = "mb") -> Optional[float]:
        """
        Log or return amount of physical RAM currently mapped into this
        process.

        :param returns: Whether to return memory used
        :param verbosity: Verbosity level required to log output.
        :param unit: Unit of reported memory usage.
        """
        process = psutil.Process(os.getpid())
        mem_usage = self.__unit_mapping(process.memory_info().rss, unit)
        self.logger(f"Memory usage: {mem_usage:.2f} {unit.upper()}", verbosity)
        if returns:
            return mem_usage

    def clean_up_memory(self, passes: int = 2) -> None:
        """
        Collect garbage, logging memory usage before and after if the
        verbosity threshold is met.
        """
        self._get_memory_usage(verbosity=2)
        for _ in range(passes):
            gc.collect()
        self._get_memory_usage(verbosity=1)

    def get_available_memory(self, unit: SizeUnit = "mb") -> float:
        """Return current available memory."""
        mem = psutil.virtual_memory()
        available = self.__unit_mapping(mem.available, unit)
        self.logger(f"Available memory: {available:.2f} {unit.upper()}", 2)

        return available
