"""
Logging setup for export runs.

Every run gets its own run ID. The orchestrator binds it onto a loguru
handle and passes that handle down; exporters bind their own name on top
of it. Nothing reconfigures the logger behind a caller's back: sinks are
installed once, by whoever owns the process (normally the CLI), through
configure_logging().

Bound fields used by the default format:
- run_id: the run the message belongs to
- unit: the exporter / post-exporter / artifact name, if any
"""

import os
import secrets
import sys
import time
from pathlib import Path

from loguru import logger as loguru_logger

# ============================================================================
# Run IDs
# ============================================================================


def generate_run_id() -> str:
    """
    Generate a unique run ID.

    Format: run_<timestamp_base36>_<random_hex>
    """
    timestamp = int(time.time() * 1000)
    random_part = secrets.token_hex(4)
    return f"run_{base36_encode(timestamp)}_{random_part}"


def base36_encode(number: int) -> str:
    """Encode an integer to base36 string."""
    if number == 0:
        return "0"

    chars = "0123456789abcdefghijklmnopqrstuvwxyz"
    result = []
    while number:
        result.append(chars[number % 36])
        number //= 36
    return "".join(reversed(result))


# ============================================================================
# Logger Configuration
# ============================================================================

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[run_id]}</cyan> <magenta>{extra[unit]}</magenta> | {message}"
)


def is_debug_enabled() -> bool:
    """Check if debug mode is enabled."""
    return os.environ.get("TREASURY_DEBUG", "").lower() == "true"


def configure_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    verbose: bool = False,
) -> None:
    """Install the stderr sink (and optionally a file sink).

    Replaces any previously installed sinks. ``verbose`` or the
    TREASURY_DEBUG environment variable lower the level to DEBUG.
    """
    if verbose or is_debug_enabled():
        level = "DEBUG"

    loguru_logger.remove()
    loguru_logger.configure(extra={"run_id": "-", "unit": ""})
    loguru_logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file is not None:
        loguru_logger.add(
            str(log_file),
            level="DEBUG",
            format=LOG_FORMAT,
            encoding="utf-8",
            enqueue=True,
        )


def bind_run_logger(run_id: str | None = None):
    """Return a logger handle bound to a run ID (generated if omitted)."""
    return loguru_logger.bind(run_id=run_id or generate_run_id(), unit="")


# Export loguru logger for direct use
logger = loguru_logger
