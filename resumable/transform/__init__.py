import ast
from typing import NamedTuple, Tuple

from ..rt.consts import Marker
from .codegen import hoist_declarations, make_state_machine, parameter_names, split_docstring
from .identify_primitives import PrimitiveResolver
from .lower import lower_body


class Transformed(NamedTuple):
    """The step function generated for a procedure body, and its suspension sites."""
    machine: ast.FunctionDef
    sites: Tuple[Marker, ...]


def transform(func_def: ast.FunctionDef, resolver: PrimitiveResolver) -> Transformed:
    """Transforms the definition of a procedure body into a state machine.  Doesn't mutate `func_def`."""
    state_id, proc_id = parameter_names(func_def)
    docstring, body = split_docstring(func_def.body)
    body, declarations = hoist_declarations(body)

    lowering = lower_body(func_def, body, resolver, state_id=state_id, proc_id=proc_id)
    machine = make_state_machine(func_def, docstring, declarations, lowering.blocks, lowering.sites,
                                 state_id=state_id, proc_id=proc_id)

    fixed_machine = ast.fix_missing_locations(machine)
    assert isinstance(fixed_machine, ast.FunctionDef)
    return Transformed(machine=fixed_machine, sites=tuple(lowering.sites))
