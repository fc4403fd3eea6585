"""
Turns procedure bodies into state machines at definition time.

The body's source is parsed, transformed (see `resumable.transform`) and compiled again.  The generated function is
bound to the body's own globals and closure cells, so it sees exactly the names the body would have seen.  The runtime
library is passed in through one extra closure cell rather than through the body's globals.
"""
import ast
import copy
import functools
import inspect
import sys
import textwrap
import types
from collections import ChainMap
from typing import Callable, Dict, Optional, Type

from . import rt
from .rt.consts import PRIVATE_PREFIX
from .rt.global_state.trace_ctrl import trace_ctrl
from .rt.logging import log_source
from .rt.procedure import Procedure
from .rt.state import State
from .transform import transform
from .transform.identify_primitives import PrimitiveResolver, bound_names
from .transform.node_visitor import NodeNotSupportedError, SourceUnavailableError
from .transform.util import RT_ID, locate, parse_ast_stmt

FACTORY_ID = PRIVATE_PREFIX + "factory"
STEP_ID = PRIVATE_PREFIX + "step"

BodyT = Callable[..., None]


def define(state_type: Type[State], body: Optional[BodyT] = None):
    """
    Defines a procedure running on states of type `state_type`; returns its entry point.

    Usually applied as a decorator::

        Counter = declare("counter", ["i"])

        @define(Counter)
        def counter(c):
            while c.i < 10:
                c.i += 1
                yield_()
    """
    if not (isinstance(state_type, type) and issubclass(state_type, State)):
        raise TypeError(f"define() takes a State type, not '{state_type.__class__.__name__}'; "
                        "use @define(StateType) on the procedure body")

    if body is None:
        return functools.partial(define, state_type)

    return compile_procedure(body, state_type)


def _read_function_def(fn: BodyT) -> ast.FunctionDef:
    """Returns the AST of a function's definition, with line numbers matching its source file."""
    try:
        source = inspect.getsource(fn)
    except (OSError, TypeError) as e:
        raise SourceUnavailableError(f"Cannot read the source of {fn.__qualname__}: {e}") from e

    mod = ast.parse(textwrap.dedent(source))
    ast.increment_lineno(mod, fn.__code__.co_firstlineno - 1)

    func_def = mod.body[0]
    if isinstance(func_def, ast.AsyncFunctionDef):
        raise NodeNotSupportedError(func_def, "Procedure bodies cannot be coroutines")
    if not isinstance(func_def, ast.FunctionDef):
        raise NodeNotSupportedError(func_def, "Procedure bodies must be defined with a def statement")
    return func_def


def _closure_cells(fn: BodyT) -> Dict[str, types.CellType]:
    return dict(zip(fn.__code__.co_freevars, fn.__closure__ or ()))


def _closure_values(cells: Dict[str, types.CellType]) -> Dict[str, object]:
    values = {}
    for name, cell in cells.items():
        try:
            values[name] = cell.cell_contents
        except ValueError:  # The variable isn't bound yet, so it cannot be a primitive.
            continue
    return values


def compile_procedure(fn: BodyT, state_type: Type[State]) -> Procedure:
    """Compiles a procedure body into a `Procedure`."""
    func_def = _read_function_def(fn)
    name = func_def.name
    cells = _closure_cells(fn)

    resolver = PrimitiveResolver(ChainMap(_closure_values(cells), fn.__globals__), bound_names(func_def))
    machine, sites = transform(func_def, resolver)

    # Nest the generated function inside a factory taking the runtime library and the body's free variables, so that
    # the compiler treats those names as closure variables.  The function is compiled under a private name: under its
    # own name it would be a local of the factory, and a procedure referring to itself would capture that local instead
    # of the global or enclosing variable the body sees.
    factory = parse_ast_stmt(f"""
        def {FACTORY_ID}({", ".join((RT_ID,) + tuple(cells))}):
            return {STEP_ID}
    """)
    assert isinstance(factory, ast.FunctionDef)
    locate([factory], func_def)
    factory.body.insert(0, copy.copy(machine))
    factory.body[0].name = STEP_ID

    mod = ast.fix_missing_locations(ast.Module(body=[factory], type_ignores=[]))
    code = compile(mod, inspect.getsourcefile(fn) or "<procedure>", "exec")

    # The factory is never run: the generated code object is bound to the original cells directly.
    factory_code = next(c for c in code.co_consts if isinstance(c, types.CodeType))
    step_code = next(c for c in factory_code.co_consts if isinstance(c, types.CodeType) and c.co_name == STEP_ID)
    if sys.version_info >= (3, 11):
        step_code = step_code.replace(co_name=name, co_qualname=fn.__qualname__)
    else:
        step_code = step_code.replace(co_name=name)
    cells[RT_ID] = types.CellType(rt)
    step = types.FunctionType(step_code, fn.__globals__, name, None,
                              tuple(cells[var] for var in step_code.co_freevars))
    step.__qualname__ = fn.__qualname__
    step.__module__ = fn.__module__
    step.__doc__ = fn.__doc__

    procedure = Procedure(name, state_type, step, sites, machine)
    functools.update_wrapper(procedure, fn)

    if trace_ctrl.should_dump_source():
        log_source(fn.__qualname__, procedure.source)

    return procedure
