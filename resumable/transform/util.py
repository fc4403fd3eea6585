import ast
import textwrap
from collections import defaultdict
from typing import DefaultDict, List, Set, Type, TypeVar

from ..rt.consts import PRIVATE_PREFIX

# Names used by generated code.  They share a prefix that user code is not expected to use.
PC_ID = PRIVATE_PREFIX + "pc"
RT_ID = PRIVATE_PREFIX + "rt"
PROC_ID = PRIVATE_PREFIX + "proc"
RESULT_ID = PRIVATE_PREFIX + "rc"
ITEM_ID = PRIVATE_PREFIX + "item"


def load(symbol_id: str) -> ast.Name:
    """Returns an AST Name node that loads a variable."""
    return ast.Name(id=symbol_id, ctx=ast.Load())


def assign(target: ast.expr, value: ast.expr) -> ast.Assign:
    """Returns an AST Assign node that assigns a value to a target."""
    return ast.Assign(targets=[target], value=value)


def const(value: object) -> ast.Constant:
    """Returns an AST node for a constant."""
    return ast.Constant(value=value, kind=None)


AST_T = TypeVar("AST_T", bound=ast.AST)


def parse_ast_expr(expr_code: str) -> ast.expr:
    """Parses code for an expression into an AST."""
    expr_code = textwrap.dedent(expr_code)
    node = ast.parse(expr_code).body[0]
    assert isinstance(node, ast.Expr)
    return node.value


def parse_ast_stmts(stmts_code: str) -> List[ast.stmt]:
    """Parses code for a block of statements into a list of ASTs."""
    stmts_code = textwrap.dedent(stmts_code)
    node = ast.parse(stmts_code, mode="exec")
    assert isinstance(node, ast.Module)
    return node.body


def parse_ast_stmt(stmt_code: str) -> ast.stmt:
    """Parses code for a single statement into an AST."""
    body = parse_ast_stmts(stmt_code)
    if len(body) > 1:
        raise ValueError(f"Code contains more than one statement: {stmt_code}")
    return body[0]


VarsByUsageType = DefaultDict[Type[ast.expr_context], Set[str]]


class _FindVariablesByUsageVisitor(ast.NodeVisitor):
    """Traverses the AST, finds variables, and group their names by usage.

    Don't instantiate this class directly.  Instead, use the `find_variables_by_usage` function defined below.
    """
    def __init__(self) -> None:
        # The keys are subtypes of `ast.expr_context` -- `Load`, `Store`, etc.
        self.vars_by_usage: VarsByUsageType = defaultdict(set)
        super(_FindVariablesByUsageVisitor, self).__init__()

    def visit_Name(self, name: ast.Name) -> None:
        self.vars_by_usage[type(name.ctx)].add(name.id)


def find_variables_by_usage(node: ast.AST) -> VarsByUsageType:
    """Returns a list of variable names grouped by usage context."""
    visitor = _FindVariablesByUsageVisitor()
    visitor.visit(node)
    return visitor.vars_by_usage


def locate(nodes: List[AST_T], anchor: ast.AST) -> List[AST_T]:
    """Gives every generated node the source location of `anchor`; returns the nodes.  Apply before splicing in
    user code, whose locations must be kept."""
    for root in nodes:
        for node in ast.walk(root):
            ast.copy_location(node, anchor)
    return nodes
