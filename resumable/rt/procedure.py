"""Entry points of defined procedures."""
import ast
from typing import Callable, Tuple, Type

import astor

from .consts import Marker
from .result import Result
from .state import State

StepT = Callable[[State, object], Result]


class Procedure(object):
    """
    The entry point of a procedure, as returned by `define()`.

    `step` is the compiled state machine; it runs one step on a state given the current process handle.  `markers`
    lists the resume markers of the procedure's suspension sites, in source order.
    """
    def __init__(self, name: str, state_type: Type[State], step: StepT, markers: Tuple[Marker, ...],
                 tree: ast.FunctionDef) -> None:
        self.name = name
        self.state_type = state_type
        self.step = step
        self.markers = markers
        self.tree = tree

    def check_state(self, state: State) -> None:
        """Raises TypeError if `state` wasn't declared for this procedure."""
        if not isinstance(state, self.state_type):
            raise TypeError(f"{self.name} runs on '{self.state_type.__name__}', "
                            f"not '{state.__class__.__name__}'")

    @property
    def source(self) -> str:
        """The generated state machine, as Python source code."""
        return astor.to_source(self.tree)

    def __repr__(self) -> str:
        return f"<procedure {self.name} ({len(self.markers)} suspension sites)>"
