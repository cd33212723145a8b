"""Configuration helpers.

Settings come from the process environment.  ``load_env`` copies
key=value pairs from a ``.env`` file into it first, without overwriting
variables that are already set, and the ``env_*`` readers parse typed
values with a default when a variable is missing or malformed.
"""
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


def load_env(path: Optional[str] = None) -> None:
    """Load environment variables from a .env file.

    Parameters
    ----------
    path : str | None, optional
        Path to the .env file. If None, `.env` in the current working
        directory is used.

    A missing file is not an error. Blank lines, comments and lines
    without ``=`` are skipped, and values may be wrapped in single or
    double quotes.
    """
    if path is None:
        path = '.env'
    if not os.path.isfile(path):
        return
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#') or '=' not in line:
                continue
            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            # do not override existing environment variables
            if key and key not in os.environ:
                os.environ[key] = value


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("invalid %s=%r, using %s", name, raw, default)
        return default


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("invalid %s=%r, using %s", name, raw, default)
        return default
