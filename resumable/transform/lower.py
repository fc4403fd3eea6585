import ast

from typing import List, NamedTuple, Union

from ..rt.consts import PRIVATE_PREFIX, Marker
from .identify_primitives import PrimitiveResolver, needs_lowering
from .node_visitor import MyNodeVisitor, NodeNotSupportedError
from .util import ITEM_ID, PC_ID, RESULT_ID, RT_ID, assign, load, locate, parse_ast_expr, parse_ast_stmts


class Block(object):
    """A straight-line run of statements that ends by jumping to another block, suspending, or returning."""

    def __init__(self, label: Marker) -> None:
        self.label = label
        self.body: List[ast.stmt] = []
        self.terminated = False


class LoopTargets(NamedTuple):
    """Where `continue` and `break` jump to inside a loop that has been broken into blocks."""
    continue_to: Block
    break_to: Block


class Lower(MyNodeVisitor):
    """
    Breaks a procedure body into blocks.  Labels are numbered from 0 (the entry block, i.e., `START`) in order of
    creation.

    Statements that need no lowering (see `needs_lowering`) are copied into the current block unchanged.  Every
    suspension primitive ends a block: `yield_()` and `wait()` resume at a fresh block after them, while `await_()` and
    `await_extern()` start a fresh block so that resuming re-runs the awaited call.  The labels that a state's marker
    may hold are collected in `sites`, in source order.

    See the `lower_body` function below for usage.
    """

    def __init__(self, resolver: PrimitiveResolver, state_id: str, proc_id: str) -> None:
        super(Lower, self).__init__()
        self._resolver = resolver
        self._state_id = state_id
        self._proc_id = proc_id

        self.blocks: List[Block] = []
        self.sites: List[Marker] = []
        self._loops: List[LoopTargets] = []
        self._next_iter_id = 0

        self.current = self.new_block()

    def new_block(self) -> Block:
        block = Block(Marker(len(self.blocks)))
        self.blocks.append(block)
        return block

    def next_iter_attr(self) -> str:
        """Returns the name of a fresh state attribute to keep a loop iterator in."""
        attr = f"{PRIVATE_PREFIX}iter_{self._next_iter_id}"
        self._next_iter_id += 1
        return attr

    # Building blocks
    def emit(self, *stmts: ast.stmt) -> None:
        if self.current.terminated:
            # Code after a return, break, etc. is unreachable, but still has to go somewhere.
            self.current = self.new_block()
        self.current.body.extend(stmts)

    def terminate(self, *stmts: ast.stmt) -> None:
        self.emit(*stmts)
        self.current.terminated = True

    def switch_to(self, block: Block) -> None:
        assert self.current.terminated, "Switching away from a block that hasn't ended"
        self.current = block

    def jump(self, target: Block, anchor: ast.AST) -> None:
        if self.current.terminated:  # Already left, e.g., through a `return`.
            return

        self.terminate(*locate(parse_ast_stmts(f"""
            {PC_ID} = {target.label}
            continue
        """), anchor))

    def branch(self, test: ast.expr, if_true: Block, if_false: Block, anchor: ast.AST) -> None:
        stmts = locate(parse_ast_stmts(f"""
            if _:
                {PC_ID} = {if_true.label}
            else:
                {PC_ID} = {if_false.label}
            continue
        """), anchor)
        stmts[0].test = test
        self.terminate(*stmts)

    def suspend(self, result_name: str, anchor: ast.AST) -> None:
        """Ends the current block by suspending; execution resumes at a new block."""
        resume_at = self.new_block()
        self.sites.append(resume_at.label)
        self.terminate(*locate(parse_ast_stmts(f"""
            {self._state_id}.marker = {resume_at.label}
            return {RT_ID}.Result.{result_name}
        """), anchor))
        self.switch_to(resume_at)

    def call_and_propagate(self, call: ast.Call, anchor: ast.AST) -> None:
        """Starts a new block, which is a suspension site, and runs `call` in it; propagates suspending results."""
        site = self.new_block()
        self.sites.append(site.label)
        self.jump(site, anchor)
        self.switch_to(site)

        stmts = locate(parse_ast_stmts(f"""
            {self._state_id}.marker = {site.label}
            {RESULT_ID} = {RT_ID}.propagate_or_continue(_)
            if {RESULT_ID} is not None:
                return {RESULT_ID}
        """), anchor)
        stmts[1].value.args[0] = call
        self.emit(*stmts)

    def finish(self, anchor: ast.AST) -> None:
        self.terminate(*locate(parse_ast_stmts(f"return {RT_ID}.complete({self._state_id})"), anchor))

    # Statements
    def lower_body(self, stmts: List[ast.stmt]) -> None:
        for stmt in stmts:
            if needs_lowering(stmt, self._resolver):
                self.visit(stmt)
            else:
                self.emit(stmt)

    def generic_visit(self, node: ast.AST, *args, **kwargs):
        raise NodeNotSupportedError(node, "Suspension primitives, return, break and continue are not supported "
                                          "inside this statement")

    def visit_Expr(self, expr: ast.Expr) -> None:
        kind = self._resolver.resolve_stmt(expr)
        assert kind is not None, "Only primitive calls need lowering"
        call = expr.value
        assert isinstance(call, ast.Call)
        getattr(self, "lower_" + kind)(call, expr)

    def _check_args(self, call: ast.Call, num_args: int) -> None:
        if call.keywords or len(call.args) != num_args or \
                any(isinstance(arg, ast.Starred) for arg in call.args):
            raise NodeNotSupportedError(call, f"Expected exactly {num_args} positional argument(s)")

    def lower_yield(self, call: ast.Call, anchor: ast.stmt) -> None:
        self._check_args(call, 0)
        self.suspend("YIELDED", anchor)

    def lower_wait(self, call: ast.Call, anchor: ast.stmt) -> None:
        self._check_args(call, 0)
        self.suspend("WAITING", anchor)

    def _rt_call(self, func_name: str, args: List[ast.expr], keywords: List[ast.keyword],
                 anchor: ast.AST) -> ast.Call:
        """Returns a call to a runtime library function, located at `anchor`."""
        func = locate([parse_ast_expr(f"{RT_ID}.{func_name}")], anchor)[0]
        return ast.copy_location(ast.Call(func=func, args=args, keywords=keywords), anchor)

    def lower_await(self, call: ast.Call, anchor: ast.stmt) -> None:
        self._check_args(call, 2)
        nested_call = self._rt_call("invoke_nested", call.args + [load(self._proc_id)], [], anchor)
        self.call_and_propagate(nested_call, anchor)

    def lower_await_extern(self, call: ast.Call, anchor: ast.stmt) -> None:
        if not call.args or isinstance(call.args[0], ast.Starred):
            raise NodeNotSupportedError(call, "The awaited function must be the first positional argument")

        extern_call = self._rt_call("invoke_extern", [call.args[0], load(self._proc_id)] + call.args[1:],
                                    call.keywords, anchor)
        self.call_and_propagate(extern_call, anchor)

    def lower_fail(self, call: ast.Call, anchor: ast.stmt) -> None:
        self._check_args(call, 1)
        stmts = locate(parse_ast_stmts(f"return {RT_ID}.record_error({self._state_id}, _)"), anchor)
        stmts[0].value.args[1] = call.args[0]
        self.terminate(*stmts)

    def visit_Return(self, ret: ast.Return) -> None:
        if ret.value is not None:
            raise NodeNotSupportedError(ret, "Procedures cannot return values; store results in the state instead")
        self.finish(ret)

    def _innermost_loop(self, node: Union[ast.Break, ast.Continue]) -> LoopTargets:
        if not self._loops:
            raise NodeNotSupportedError(node, "Loop control outside of a loop")
        return self._loops[-1]

    def visit_Break(self, br: ast.Break) -> None:
        self.jump(self._innermost_loop(br).break_to, br)

    def visit_Continue(self, cont_stmt: ast.Continue) -> None:
        self.jump(self._innermost_loop(cont_stmt).continue_to, cont_stmt)

    def visit_If(self, if_stmt: ast.If) -> None:
        body = self.new_block()
        orelse = self.new_block() if if_stmt.orelse else None
        after = self.new_block()

        self.branch(if_stmt.test, body, orelse or after, if_stmt)

        self.switch_to(body)
        self.lower_body(if_stmt.body)
        self.jump(after, if_stmt)

        if orelse is not None:
            self.switch_to(orelse)
            self.lower_body(if_stmt.orelse)
            self.jump(after, if_stmt)

        self.switch_to(after)

    def visit_While(self, while_stmt: ast.While) -> None:
        if while_stmt.orelse:
            raise NodeNotSupportedError(while_stmt, "While statement with orelse not supported")

        head = self.new_block()
        body = self.new_block()
        after = self.new_block()

        self.jump(head, while_stmt)
        self.switch_to(head)
        self.branch(while_stmt.test, body, after, while_stmt)

        self._loops.append(LoopTargets(continue_to=head, break_to=after))
        self.switch_to(body)
        self.lower_body(while_stmt.body)
        self.jump(head, while_stmt)
        self._loops.pop()

        self.switch_to(after)

    def visit_For(self, for_stmt: ast.For) -> None:
        """
        A loop iterator must survive suspensions, so it is kept on the state.  For example::

            for s.x in xs:
                yield_()

        becomes, roughly::

            s._resumable_iter_0 = iter(xs)
            head:   item = next(s._resumable_iter_0, EXHAUSTED)
                    if item is EXHAUSTED: goto after
            body:   s.x = item
                    yield_()
                    goto head
            after:  s._resumable_iter_0 = None
        """
        if for_stmt.orelse:
            raise NodeNotSupportedError(for_stmt, "For statement with orelse not supported")

        iter_attr = self.next_iter_attr()
        iterator = f"{self._state_id}.{iter_attr}"

        create_iter = locate(parse_ast_stmts(f"{iterator} = iter(_)"), for_stmt)
        create_iter[0].value.args[0] = for_stmt.iter
        self.emit(*create_iter)

        head = self.new_block()
        body = self.new_block()
        after = self.new_block()

        self.jump(head, for_stmt)
        self.switch_to(head)
        self.emit(*locate(parse_ast_stmts(f"{ITEM_ID} = next({iterator}, {RT_ID}.EXHAUSTED)"), for_stmt))
        exhausted = locate([parse_ast_expr(f"{ITEM_ID} is {RT_ID}.EXHAUSTED")], for_stmt)[0]
        self.branch(exhausted, after, body, for_stmt)

        self._loops.append(LoopTargets(continue_to=head, break_to=after))
        self.switch_to(body)
        self.emit(ast.copy_location(assign(for_stmt.target, load(ITEM_ID)), for_stmt))
        self.lower_body(for_stmt.body)
        self.jump(head, for_stmt)
        self._loops.pop()

        self.switch_to(after)
        self.emit(*locate(parse_ast_stmts(f"{iterator} = None"), for_stmt))


def lower_body(func_def: ast.FunctionDef, body: List[ast.stmt], resolver: PrimitiveResolver, state_id: str,
               proc_id: str) -> Lower:
    """Breaks the body of `func_def` into blocks; every block of the result is terminated."""
    lowering = Lower(resolver, state_id=state_id, proc_id=proc_id)
    lowering.lower_body(body)
    if not lowering.current.terminated:  # Falling off the end completes the procedure.
        lowering.finish(body[-1] if body else func_def)
    return lowering
