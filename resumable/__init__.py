"""
Stackless, resumable procedures.

A procedure is an ordinary function body that can suspend at explicit points and later be resumed exactly where it
left off, without relying on generators or `async`::

    from resumable import Result, declare, define, invoke, yield_

    Counter = declare("counter", ["i"])

    @define(Counter)
    def counter(c):
        while c.i < 3:
            c.i += 1
            yield_()

    c = Counter(i=0)
    while invoke(counter, c) is Result.YIELDED:
        print(c.i)

The state, i.e., the resume marker and the declared fields, is allocated and owned by the caller.  The library does
not schedule anything: what to do with a suspended procedure is up to whoever invoked it.
"""
from .compiler import define
from .rt import (DONE, START, InvalidMarkerError, PrimitiveOutsideProcedureError, Procedure, Process, ResumableError,
                 Result, State, await_, await_extern, declare, fail, init, invoke, propagate_or_continue, resume,
                 set_logging_level, wait, yield_)
from .transform.node_visitor import NodeNotSupportedError, SourceUnavailableError

__version__ = "0.1.0"
