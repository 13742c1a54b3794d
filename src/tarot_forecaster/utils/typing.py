# stdlib
from typing import Literal, Union, Sequence, TypeAlias
from pathlib import Path
from datetime import datetime
# thirdpartylib
import numpy as np
from numpy.typing import NDArray

# Verbosity for classes, functions, methods, etc.
Verbosity: TypeAlias = Literal[0, 1, 2]
# Mode for opening documents
ReadMode: TypeAlias = Literal["r"]
WriteMode: TypeAlias = Literal["w", "x"]
OpenMode: TypeAlias = Literal[ReadMode, WriteMode]
# Type alias for file/folder paths
Address: TypeAlias = Union[str, Path]
# Units for measuring digital information
SizeUnit: TypeAlias = Literal["b", "kb", "mb", "gb", "tb"]
# Column field name as found in a row mapping
Field: TypeAlias = str
# Raw, untyped cell as handed over by an ingestion source
RawCell: TypeAlias = Union[str, float, int, bool, datetime, None]
RawGrid: TypeAlias = Sequence[Sequence[RawCell]]
# Observed series as (epoch seconds, value) pairs
SeriesPair: TypeAlias = tuple[int, float]
# One-dimensional numeric input
ArrayLike1D: TypeAlias = Union[Sequence[float], NDArray[np.floating]]
FloatArray: TypeAlias = NDArray[np.float64]
