import ast
from typing import List, Sequence, Tuple, Union

from ..rt.consts import START, Marker
from .lower import Block
from .node_visitor import NodeNotSupportedError
from .util import PC_ID, PROC_ID, RT_ID, const, locate, parse_ast_expr, parse_ast_stmt

DeclarationT = Union[ast.Global, ast.Nonlocal]


class HoistDeclarations(ast.NodeTransformer):
    """
    Removes `global` and `nonlocal` statements from a function body (not from nested scopes) and collects them.

    Blocks are laid out by label rather than in source order, so the declarations have to go to the top of the
    generated function to precede every use of the names they declare.
    """

    def __init__(self) -> None:
        super(HoistDeclarations, self).__init__()
        self.declarations: List[DeclarationT] = []

    def _visit_scope(self, node: ast.AST) -> ast.AST:
        return node

    visit_FunctionDef = visit_AsyncFunctionDef = visit_ClassDef = visit_Lambda = _visit_scope

    def _visit_declaration(self, decl: DeclarationT) -> ast.AST:
        self.declarations.append(decl)
        return ast.copy_location(ast.Pass(), decl)

    visit_Global = visit_Nonlocal = _visit_declaration


def hoist_declarations(body: List[ast.stmt]) -> Tuple[List[ast.stmt], List[DeclarationT]]:
    """Returns the body without `global`/`nonlocal` statements, and those statements."""
    hoister = HoistDeclarations()
    new_body = [hoister.visit(stmt) for stmt in body]
    return new_body, hoister.declarations


def split_docstring(body: List[ast.stmt]) -> Tuple[List[ast.stmt], List[ast.stmt]]:
    """Returns the docstring statement (as a list of at most one element) and the rest of a function body."""
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant) \
            and isinstance(body[0].value.value, str):
        return body[:1], body[1:]
    return [], body


def parameter_names(func_def: ast.FunctionDef) -> Tuple[str, str]:
    """
    Returns the names of the state parameter and the process handle parameter of a procedure body.

    A body takes the state and, optionally, the current process handle, as plain positional parameters.
    """
    args = func_def.args
    if args.vararg or args.kwarg or args.kwonlyargs or args.defaults or args.kw_defaults:
        raise NodeNotSupportedError(func_def, "Procedure bodies take plain positional parameters only")

    params = list(getattr(args, "posonlyargs", [])) + list(args.args)
    if len(params) == 1:
        return params[0].arg, PROC_ID
    if len(params) == 2:
        return params[0].arg, params[1].arg
    raise NodeNotSupportedError(func_def, "Procedure bodies take the state and, optionally, the process handle")


def make_state_machine(func_def: ast.FunctionDef, docstring: List[ast.stmt], declarations: List[DeclarationT],
                       blocks: Sequence[Block], sites: Sequence[Marker], state_id: str,
                       proc_id: str) -> ast.FunctionDef:
    """
    Generates the step function of a procedure from its blocks.  The result looks like::

        def name(state, proc):
            pc = state.marker
            if pc not in (START, site, ...):
                raise InvalidMarkerError
            while True:
                if pc == 0:
                    ...
                    pc = 2
                    continue
                if pc == 1:
                    ...
                    state.marker = 3
                    return Result.YIELDED
                ...
                raise InvalidMarkerError

    Each block ends in either `continue` or `return`, so control only reaches the final `raise` if `pc` matches no
    block, which the entry check rules out.
    """
    name = func_def.name
    machine = parse_ast_stmt(f"""
        def {name}({state_id}, {proc_id}):
            {PC_ID} = {state_id}.marker
            if {PC_ID} not in _:
                raise {RT_ID}.bad_marker({name!r}, {state_id})
            while True:
                pass
    """)
    assert isinstance(machine, ast.FunctionDef)
    locate([machine], func_def)

    entry_check = machine.body[1]
    assert isinstance(entry_check, ast.If)
    valid_markers = (START,) + tuple(sites)
    entry_check.test.comparators = [ast.copy_location(ast.Tuple(elts=[const(m) for m in valid_markers],
                                                                ctx=ast.Load()), func_def)]

    dispatch: List[ast.stmt] = []
    for block in blocks:
        assert block.terminated, f"Block {block.label} of {name} doesn't end"
        anchor = block.body[0]
        test = locate([parse_ast_expr(f"{PC_ID} == {block.label}")], anchor)[0]
        dispatch.append(ast.copy_location(ast.If(test=test, body=block.body, orelse=[]), anchor))
    dispatch.append(locate([parse_ast_stmt(f"raise {RT_ID}.bad_marker({name!r}, {state_id})")], func_def)[0])

    loop = machine.body[-1]
    assert isinstance(loop, ast.While)
    loop.body = dispatch

    machine.body[0:0] = docstring + declarations
    return machine
