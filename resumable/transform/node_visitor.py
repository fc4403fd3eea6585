import ast

from typing import Optional

from ..rt.errors import ResumableError


class NodeNotSupportedError(ResumableError):
    """Exception indicating that a procedure body uses a construct the compiler cannot turn into a state machine."""

    DEFAULT_MESSAGE = "Unsupported AST node"

    def __init__(self, node: ast.AST, message: Optional[str] = None) -> None:
        """Constructs this exception; takes as argument the encountered unsupported node."""
        message = message or self.DEFAULT_MESSAGE
        lineno = getattr(node, "lineno", None)
        where = f" (line {lineno})" if lineno is not None else ""
        super(NodeNotSupportedError, self).__init__(f"{message}{where}: {ast.dump(node)}")
        self.node = node


class SourceUnavailableError(ResumableError):
    """Raised when the source code of a procedure body cannot be retrieved."""


class MyNodeVisitor(object):
    """
    A visitor for passes that must understand every statement they touch.  Unlike `ast.NodeVisitor`, `visit()` passes
    extra arguments through to the handler, and a node type without a `visit_*` handler is rejected with
    `NodeNotSupportedError` instead of being walked.  Handlers recurse into children themselves.
    """
    def visit(self, node: ast.AST, *args, **kwargs):
        """Calls `visit_<NodeType>` on `node`."""
        method = 'visit_' + node.__class__.__name__
        visitor = getattr(self, method, self.generic_visit)
        return visitor(node, *args, **kwargs)

    def generic_visit(self, node: ast.AST, *args, **kwargs):
        """Rejects nodes without a handler."""
        raise NodeNotSupportedError(node)
