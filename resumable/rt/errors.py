"""Exceptions raised by the runtime library."""
from .consts import DONE


class ResumableError(Exception):
    """Base class for every exception raised by this package."""


class InvalidMarkerError(ResumableError):
    """Raised when a state's resume marker doesn't name a site of the procedure invoked on it."""

    def __init__(self, procedure_name: str, marker: int) -> None:
        self.procedure_name = procedure_name
        self.marker = marker
        if marker == DONE:
            message = f"{procedure_name}: invoked after reaching a terminal result; call init() to restart it"
        else:
            message = f"{procedure_name}: no suspension site with marker {marker}"
        super(InvalidMarkerError, self).__init__(message)


class PrimitiveOutsideProcedureError(ResumableError, RuntimeError):
    """Raised when a suspension primitive is called outside the body of a defined procedure."""

    def __init__(self, primitive_name: str) -> None:
        super(PrimitiveOutsideProcedureError, self).__init__(
            f"{primitive_name}() can only be used as a statement in the body of a @define'd procedure")
