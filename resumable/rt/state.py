"""
Resumption state: the resume marker plus the locals that must survive a suspension.

The runtime never allocates states.  Whoever creates a state owns it; a parent procedure typically owns the states of
the children it awaits as its own fields, so the persisted state of a whole call tree is one object graph.
"""
import copy
import keyword
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Tuple, Type, Union

from .consts import DONE, PRIVATE_PREFIX, START, Marker

RESERVED_FIELDS = frozenset({"marker", "error"})

FieldsT = Union[Iterable[str], Mapping[str, Any]]


class State(object):
    """
    Base class for the state of a procedure.

    Subclasses list their locals in `FIELDS` and optional defaults in `DEFAULTS`; `declare()` builds such a subclass.
    Instantiating a subclass initializes it; see `init()`.
    """
    NAME: ClassVar[str] = "state"
    FIELDS: ClassVar[Tuple[str, ...]] = ()
    DEFAULTS: ClassVar[Mapping[str, Any]] = {}

    marker: Marker
    error: Optional[object]

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        cls.FIELDS = tuple(cls.FIELDS)
        seen = set()
        for field_name in cls.FIELDS:
            _check_field_name(field_name)
            if field_name in seen:
                raise ValueError(f"Duplicate field name: {field_name!r}")
            seen.add(field_name)

        stray = set(cls.DEFAULTS) - seen
        if stray:
            raise ValueError(f"Defaults given for undeclared field(s): {', '.join(sorted(stray))}")

    def __init__(self, **initializers) -> None:
        init(self, **initializers)

    @property
    def done(self) -> bool:
        """True once the procedure has returned COMPLETE or ERROR."""
        return self.marker == DONE

    def fields(self) -> Dict[str, Any]:
        """Returns the current values of the declared fields."""
        return {name: getattr(self, name) for name in self.FIELDS}

    def __repr__(self) -> str:
        values = ", ".join(f"{name}={value!r}" for name, value in self.fields().items())
        if values:
            values = ", " + values
        return f"<{self.NAME} marker={self.marker}{values}>"


def _check_field_name(name: str) -> None:
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise ValueError(f"Field name is not a valid identifier: {name!r}")
    if name in RESERVED_FIELDS:
        raise ValueError(f"Field name is reserved: {name!r}")
    if name.startswith("_"):
        raise ValueError(f"Field name cannot start with an underscore: {name!r}")


def declare(name: str, fields: FieldsT = ()) -> Type[State]:
    """
    Declares the state layout of a procedure; returns a new `State` subclass.

    :param name: name of the procedure, used in reprs and log entries.
    :param fields: names of the locals, or a mapping from each name to its default value.
    """
    if isinstance(fields, Mapping):
        defaults = dict(fields)
        names = tuple(defaults)
    elif isinstance(fields, str):
        raise TypeError("fields must be an iterable of names, not a string")
    else:
        defaults = {}
        names = tuple(fields)

    # Field names are validated by `State.__init_subclass__()`.
    return type(f"{name}_state", (State,), {
        "NAME": name,
        "FIELDS": names,
        "DEFAULTS": defaults,
        "__module__": __name__,
    })


def init(state: State, **initializers) -> None:
    """
    (Re-)initializes a state: sets the marker to the start sentinel and every field to its initial value.

    A field not passed in gets a copy of its declared default, or None.  Initializing a state in the middle of
    execution discards all progress, which restarts the procedure.
    """
    unknown = set(initializers) - set(state.FIELDS)
    if unknown:
        raise TypeError(f"{state.NAME}: unknown field(s): {', '.join(sorted(unknown))}")

    # Drop loop iterators left over by the compiler-generated code.
    for attr in [attr for attr in vars(state) if attr.startswith(PRIVATE_PREFIX)]:
        delattr(state, attr)

    state.marker = START
    state.error = None
    for field_name in state.FIELDS:
        if field_name in initializers:
            value = initializers[field_name]
        else:
            value = copy.deepcopy(state.DEFAULTS.get(field_name))
        setattr(state, field_name, value)
