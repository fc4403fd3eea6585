"""
Resumable runtime library.

Compiled procedure bodies refer to this module for everything they need at run time, so keep the names used by
`resumable.transform` stable.
"""
import logging

from .consts import DONE, START, Marker
from .errors import InvalidMarkerError, PrimitiveOutsideProcedureError, ResumableError
from .primitives import PRIMITIVES, await_, await_extern, fail, wait, yield_
from .procedure import Procedure
from .process import (EXHAUSTED, Process, bad_marker, complete, invoke, invoke_extern, invoke_nested, record_error,
                      resume)
from .result import Result, propagate_or_continue
from .state import State, declare, init


def set_logging_level(level) -> None:
    """Sets the logging level for the runtime's logger."""
    logging.getLogger("resumable").setLevel(level)
