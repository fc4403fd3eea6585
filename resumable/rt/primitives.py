"""
Suspension primitives.

These are markers for the compiler: inside a `@define`d body each call is replaced by the code that suspends or
delegates.  Calling one anywhere else is an error.
"""
from typing import Callable, Dict

from .errors import PrimitiveOutsideProcedureError
from .result import Result


def yield_() -> None:
    """Suspends with YIELDED; the next invocation resumes right after this statement."""
    raise PrimitiveOutsideProcedureError("yield_")


def wait() -> None:
    """Suspends with WAITING, which every awaiting parent returns unchanged; resumes right after this statement."""
    raise PrimitiveOutsideProcedureError("wait")


def await_(entry, state) -> None:
    """
    Runs one step of the procedure `entry` on `state`.

    If it returns ERROR, SCHEDULED or WAITING, the current procedure returns that result and will re-run this
    statement when resumed.  On COMPLETE or YIELDED, execution continues past the statement.
    """
    raise PrimitiveOutsideProcedureError("await_")


def await_extern(fn: Callable[..., Result], *args, **kwargs) -> None:
    """Same as `await_()`, except `fn(proc, *args, **kwargs)` is called with the current process handle."""
    raise PrimitiveOutsideProcedureError("await_extern")


def fail(error: object) -> None:
    """Stores `error` in the state's error slot and returns ERROR; the procedure is finished."""
    raise PrimitiveOutsideProcedureError("fail")


# Maps each primitive to the kind of statement the compiler emits for it.
PRIMITIVES: Dict[Callable, str] = {
    yield_: "yield",
    wait: "wait",
    await_: "await",
    await_extern: "await_extern",
    fail: "fail",
}
