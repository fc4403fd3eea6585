"""The outcome of running one step of a procedure."""
from enum import Enum, auto
from typing import Optional


class Result(Enum):
    """
    The result of invoking a procedure:
      - COMPLETE: exited normally;
      - ERROR: exited abnormally, the procedure's `error` slot should be set;
      - SCHEDULED: suspended and handed to an external scheduler, which is expected to resume it;
      - WAITING: suspended but not handed to anyone; the caller is expected to retry the same call chain;
      - YIELDED: gave up the rest of its quantum, perhaps to hand back a value.

    Invoking a procedure again after it returned COMPLETE or ERROR is a usage error.
    """
    COMPLETE = auto()
    ERROR = auto()
    SCHEDULED = auto()
    WAITING = auto()
    YIELDED = auto()

    @property
    def terminal(self) -> bool:
        """True if no further invocation is legal."""
        return self in (Result.COMPLETE, Result.ERROR)

    @property
    def propagates(self) -> bool:
        """True if an awaiting parent must return this result instead of continuing past the await."""
        return self in (Result.ERROR, Result.SCHEDULED, Result.WAITING)

    def __str__(self):
        """Returns a shorter string representation (e.g., "YIELDED" instead of "Result.YIELDED")."""
        return self.name


def propagate_or_continue(result: Result) -> Optional[Result]:
    """Returns `result` if the caller should return it up the chain, or None if the caller should keep going."""
    if not isinstance(result, Result):
        raise TypeError(f"Expected a Result, got '{result.__class__.__name__}'")
    return result if result.propagates else None
