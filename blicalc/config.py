"""Runtime configuration read from the environment (optionally seeded from a .env file)."""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_PRECISION = 6
DEFAULT_HISTORY_FILE = "~/.blicalc_history"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@dataclass
class Config:
    """Settings shared by the REPL, the command line and the HTTP service."""
    history_file: str = os.path.expanduser(DEFAULT_HISTORY_FILE)
    precision: int = DEFAULT_PRECISION
    log_level: str = DEFAULT_LOG_LEVEL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def _read_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}; using {default}")
        return default
    if value < minimum:
        logger.warning(f"Ignoring out-of-range {name}={raw!r}; using {default}")
        return default
    return value


def load_config() -> Config:
    """
    Build a Config from BLICALC_* environment variables.

    Call load_dotenv() first if values from a .env file should be visible here.
    Invalid numeric values fall back to their defaults with a warning.
    """
    return Config(
        history_file=os.path.expanduser(os.getenv("BLICALC_HISTORY_FILE", DEFAULT_HISTORY_FILE)),
        precision=_read_int("BLICALC_PRECISION", DEFAULT_PRECISION),
        log_level=os.getenv("BLICALC_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL,
        host=os.getenv("BLICALC_HOST", DEFAULT_HOST),
        port=_read_int("BLICALC_PORT", DEFAULT_PORT, minimum=1),
    )


def configure_logging(level_name: str) -> None:
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
