# stdlib
from pathlib import Path
from datetime import datetime
from typing import Iterable, Optional
# projectlib
from tarot_forecaster.utils.typing import Address, OpenMode

def validate_address(
    address: Address,
    *,
    extension: Optional[str] = None,
    allowed: Optional[Iterable[str]] = None,
    mode: OpenMode = 'r',
    mkdir: bool = False,
) -> Path:
    """
    Validate and normalize a file or directory path.

    Converts the input to a ``pathlib.Path``, optionally creates
    directories, enforces a file extension, and validates existence
    based on the intended I/O mode.

    Parameters
    ----------
    address : Address
        File or directory path as a string or ``Path``.
    extension : str, optional
        Extension forced onto file paths (e.g. ``".csv"``). A path with
        any other suffix, or none, has it replaced.
    allowed : Iterable[str], optional
        Case-insensitive set of accepted suffixes for file paths.
        Paths whose suffix is missing or not listed are rejected.
    mode : OpenMode, default "r"
        Intended file access mode:
        - ``"r"``: path must exist if it refers to a file
        - ``"w"``: existing files are overwritten
        - ``"x"``: existing files are renamed to avoid overwrite
    mkdir : bool, default False
        If True, treat the path as a directory and create it (including
        parents) if it does not already exist.

    Returns
    -------
    pathlib.Path
        Validated and normalized path.

    Raises
    ------
    NotADirectoryError
        If the parent directory does not exist.
    FileNotFoundError
        If ``mode="r"`` and the file does not exist.
    ValueError
        If ``allowed`` is given and the suffix is missing or unsupported.
    """
    # Normalize to Path
    if isinstance(address, str):
        address = Path(address)
    address = address.expanduser()
    # Optionally create directory paths
    if mkdir:
        address.mkdir(parents=True, exist_ok=True)
    # If the path is an existing directory, return immediately
    if address.is_dir():
        return address
    # Validate parent directory for file paths
    if not address.parent.is_dir():
        msg = (
            f"Address path {address.parent}"
            " does not exist or is not a directory."
        )
        raise NotADirectoryError(msg)
    # Enforce file extension
    if extension is not None and address.suffix != extension:
        address = address.with_suffix(extension)
    if allowed is not None:
        suffixes = {s.lower() for s in allowed}
        if not address.suffix:
            raise ValueError(f"{address.name!r} has no extension.")
        if address.suffix.lower() not in suffixes:
            raise ValueError(
                f"Cannot parse {address.suffix.lstrip('.')!r} file extension."
            )
    # Reading requires the file to exist
    if mode == "r" and not address.is_file():
        msg = f"{address} is not a file or does not exist."
        raise FileNotFoundError(msg)
    # Exclusive writing: avoid overwriting existing files
    if mode == "x" and address.exists():
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        address = address.with_name(
            f"{address.stem}_{timestamp}{address.suffix}"
        )

    return address
