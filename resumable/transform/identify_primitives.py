"""
Finds suspension primitives in a procedure body, and the statements that the compiler has to break into blocks.

A call is a primitive if its callee, a name or a dotted path through modules, resolves to one of the functions in
`resumable.rt.primitives` in the body's namespace at definition time.  Names bound inside the body shadow the
namespace and are never primitives.
"""
import ast
import types
from typing import AbstractSet, Mapping, Optional, Set, Union

from ..rt.primitives import PRIMITIVES
from .node_visitor import NodeNotSupportedError
from .util import find_variables_by_usage

_MISSING = object()

ScopeT = Union[ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda]
LoopT = Union[ast.For, ast.AsyncFor, ast.While]


class PrimitiveResolver(object):
    """Decides which calls are suspension primitives."""

    def __init__(self, namespace: Mapping[str, object], local_names: AbstractSet[str] = frozenset()) -> None:
        """
        :param namespace: the names visible to the body (its closure variables, then its globals).
        :param local_names: names bound inside the body.
        """
        self._namespace = namespace
        self._local_names = local_names

    def _lookup(self, node: ast.expr) -> object:
        if isinstance(node, ast.Name):
            if node.id in self._local_names:
                return _MISSING
            return self._namespace.get(node.id, _MISSING)

        if isinstance(node, ast.Attribute):
            base = self._lookup(node.value)
            # Only follow attributes of modules (e.g., `resumable.yield_`) so that resolution has no side effects.
            if isinstance(base, types.ModuleType):
                return getattr(base, node.attr, _MISSING)

        return _MISSING

    def resolve(self, node: ast.AST) -> Optional[str]:
        """Returns the kind of primitive called by `node` (e.g., "yield"), or None if it isn't a primitive call."""
        if not isinstance(node, ast.Call):
            return None

        obj = self._lookup(node.func)
        for primitive, kind in PRIMITIVES.items():
            if obj is primitive:
                return kind
        return None

    def resolve_stmt(self, stmt: ast.stmt) -> Optional[str]:
        """Returns the kind of primitive if `stmt` is a primitive call used as a statement."""
        if isinstance(stmt, ast.Expr):
            return self.resolve(stmt.value)
        return None


class FindLoweringPoints(ast.NodeVisitor):
    """
    Walks a statement and determines whether it has to be broken into blocks, i.e., whether it contains:
      - a suspension primitive;
      - a `return`, which must mark the state as finished; or
      - a `break` or `continue` that leaves the statement, i.e., targets a loop that is itself broken into blocks.

    Also rejects primitives used inside expressions and generator or coroutine expressions.

    Nested function, lambda and class definitions are separate scopes and are skipped.
    """

    def __init__(self, resolver: PrimitiveResolver) -> None:
        super(FindLoweringPoints, self).__init__()
        self._resolver = resolver
        self._loop_depth = 0
        self.found = False

    def _visit_scope(self, _node: ScopeT) -> None:
        pass

    visit_FunctionDef = visit_AsyncFunctionDef = visit_ClassDef = visit_Lambda = _visit_scope

    def visit_Expr(self, expr: ast.Expr) -> None:
        if self._resolver.resolve_stmt(expr):
            self.found = True
            self.generic_visit(expr.value)  # Check the arguments, not the call itself.
        else:
            self.generic_visit(expr)

    def visit_Call(self, call: ast.Call) -> None:
        if self._resolver.resolve(call):
            raise NodeNotSupportedError(call, "Suspension primitives can only be used as statements")
        self.generic_visit(call)

    def _reject(self, node: ast.AST) -> None:
        raise NodeNotSupportedError(node, "Generators and coroutines cannot be procedure bodies")

    visit_Yield = visit_YieldFrom = visit_Await = _reject

    def visit_Return(self, ret: ast.Return) -> None:
        self.found = True
        self.generic_visit(ret)

    def _visit_loop_control(self, _node: Union[ast.Break, ast.Continue]) -> None:
        if self._loop_depth == 0:
            self.found = True

    visit_Break = visit_Continue = _visit_loop_control

    def _visit_loop(self, loop: LoopT) -> None:
        if isinstance(loop, ast.While):
            self.visit(loop.test)
        else:
            self.visit(loop.target)
            self.visit(loop.iter)

        self._loop_depth += 1
        for stmt in loop.body:
            self.visit(stmt)
        self._loop_depth -= 1

        # `break` in an `else` clause belongs to the enclosing loop.
        for stmt in loop.orelse:
            self.visit(stmt)

    visit_For = visit_AsyncFor = visit_While = _visit_loop


def needs_lowering(stmt: ast.stmt, resolver: PrimitiveResolver) -> bool:
    """Returns True if `stmt` must be broken into blocks rather than copied into the state machine as is."""
    finder = FindLoweringPoints(resolver)
    finder.visit(stmt)
    return finder.found


def bound_names(func_def: ast.FunctionDef) -> Set[str]:
    """Returns the names a function binds: parameters, assignment targets, imports and definitions.  Includes names
    bound in nested scopes, which only makes primitive resolution more conservative."""
    args = func_def.args
    params = list(getattr(args, "posonlyargs", [])) + args.args + args.kwonlyargs
    params += [arg for arg in (args.vararg, args.kwarg) if arg is not None]
    names = {param.arg for param in params}

    vars_by_usage = find_variables_by_usage(func_def)
    names |= vars_by_usage[ast.Store] | vars_by_usage[ast.Del]

    for node in ast.walk(func_def):
        if isinstance(node, (ast.Import, ast.ImportFrom)):
            names.update((alias.asname or alias.name).split(".")[0] for alias in node.names)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)) and node is not func_def:
            names.add(node.name)
    return names
