"""Custom logging functions to ensure format conformity."""
import logging
from typing import Optional

logger = logging.getLogger("resumable")


def log(name: str, marker: int, msg: str, *, level: int = logging.DEBUG) -> None:
    """Writes a log entry tagged with a procedure name and resume marker."""
    logger.log(level, f"[{name}, marker={marker}] {msg}")


def log_step(name: str, start_marker: int, end_marker: int, result: object, error: Optional[object] = None) -> None:
    """Logs one step of forward progress."""
    msg = f"-> {result} (next marker={end_marker})"
    if error is not None:
        msg += f": {error!r}"
    log(name, start_marker, msg)


def log_source(name: str, source: str) -> None:
    """Logs the code generated for a procedure."""
    logger.debug(f"generated code for {name}:\n{source}")
