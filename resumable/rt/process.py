"""
Invocation protocol: running one step of a procedure from its saved state.

A `Process` points to the top-most procedure in a tree of procedure calls.  It is built fresh by `invoke()` and passed
down, unchanged, to every procedure awaited during that invocation.

When a procedure suspends, its marker is set to just after the yield, or to the await statement it is blocked on.  A
suspension deep in the tree is returned up through every await, each of which records its own site first.  Resuming
the root therefore dives back through the chain of awaits down to the point of suspension.
"""
from typing import Callable, NamedTuple, TYPE_CHECKING

from .consts import DONE
from .errors import InvalidMarkerError
from .global_state.trace_ctrl import trace_ctrl
from .logging import log_step
from .result import Result
from .state import State

if TYPE_CHECKING:
    from .procedure import Procedure

# Returned by `next()` in compiled `for` loops when the iterator is exhausted.
EXHAUSTED = object()


class Process(NamedTuple):
    """Binds an entry point to the state it runs on.  Never stored by the runtime."""
    entry: "Procedure"
    state: State


def invoke(entry: "Procedure", state: State) -> Result:
    """Runs `entry` on `state` until it completes, fails or suspends; returns why it stopped."""
    return resume(Process(entry, state))


def resume(proc: Process) -> Result:
    """Like `invoke()`, but reuses an existing process handle."""
    entry, state = proc
    entry.check_state(state)

    if not trace_ctrl.should_trace():
        return entry.step(state, proc)

    start_marker = state.marker
    result = entry.step(state, proc)
    log_step(entry.name, start_marker, state.marker, result, state.error)
    return result


def invoke_nested(entry: "Procedure", state: State, proc: Process) -> Result:
    """Runs one step of a procedure awaited by another; the root handle is passed down unchanged."""
    entry.check_state(state)
    return entry.step(state, proc)


def invoke_extern(fn: Callable[..., Result], proc: Process, *args, **kwargs) -> Result:
    """Calls a plain function awaited by a procedure as `fn(proc, *args, **kwargs)`; it must return a Result."""
    result = fn(proc, *args, **kwargs)
    if not isinstance(result, Result):
        raise TypeError(f"{getattr(fn, '__name__', fn)!s}() should return a Result, not "
                        f"'{result.__class__.__name__}'")
    return result


def complete(state: State) -> Result:
    """Marks a state as finished; used where a procedure body returns or falls off its end."""
    state.marker = DONE
    return Result.COMPLETE


def record_error(state: State, error: object) -> Result:
    """Records an error in the state's error slot and marks it as finished."""
    state.error = error
    state.marker = DONE
    return Result.ERROR


def bad_marker(name: str, state: State) -> InvalidMarkerError:
    """Returns the exception raised when no site matches the state's marker."""
    return InvalidMarkerError(name, state.marker)
