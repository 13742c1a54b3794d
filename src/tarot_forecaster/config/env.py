# stdlib
import os
from pathlib import Path
from typing import Optional
# thirdpartylib
from dotenv import load_dotenv

_UNSET = object()

def fetch_var(name: str, default: object = _UNSET) -> str:
    """
    Fetch an environment variable, falling back to ``default``.

    Without a default, a missing or empty variable fails loudly.
    """
    try:
        value = os.environ[name].strip()
        if not value:
            if default is not _UNSET:
                return str(default)
            raise RuntimeError(
                f"Environment variable '{name}' is empty."
            )
        return value
    except KeyError as e:
        if default is not _UNSET:
            return str(default)
        raise RuntimeError(
            f"Environment variable '{name}' is not set. "
            "Create a .env file or define the variable."
        ) from e

def fetch_flag(name: str, default: bool = False) -> bool:
    """Interpret an environment variable as a boolean switch."""
    value = fetch_var(name, "1" if default else "0")
    return value.lower() in {"1", "true", "yes", "on"}

def fetch_optional_int(name: str) -> Optional[int]:
    value = fetch_var(name, "")
    return int(value) if value else None


# Load env variables
load_dotenv()

VERBOSITY = int(fetch_var("TAROT_VERBOSITY", 0))
LOG_DIR = Path(fetch_var("TAROT_LOG_DIR", Path.cwd()))
WRITE_LOG = fetch_flag("TAROT_WRITE_LOG")
HIDDEN_SIZE = int(fetch_var("TAROT_HIDDEN_SIZE", 32))
SEED = fetch_optional_int("TAROT_SEED")
TIMEZONE = fetch_var("TAROT_TIMEZONE", "") or None
LOCK_TIMEOUT = float(fetch_var("TAROT_LOCK_TIMEOUT", 5.0))
PROGRESS_CAPACITY = int(fetch_var("TAROT_PROGRESS_CAPACITY", 1024))
