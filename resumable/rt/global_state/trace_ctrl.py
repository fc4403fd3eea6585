import os
import sys


class TraceControl(object):
    """Contains the debugging switches, read from the environment once at import time."""
    TRACE_ENV = "RESUMABLE_TRACE"
    DUMP_SOURCE_ENV = "RESUMABLE_DUMP_SOURCE"

    _TRUE = ("1", "true", "yes", "on")
    _FALSE = ("", "0", "false", "no", "off")

    def __init__(self) -> None:
        self.trace_steps = self._read_flag(self.TRACE_ENV)
        self.dump_source = self._read_flag(self.DUMP_SOURCE_ENV)

    @classmethod
    def _read_flag(cls, env_name: str) -> bool:
        value_str = os.environ.get(env_name)
        if value_str is None:
            return False

        value = value_str.strip().lower()
        if value in cls._TRUE:
            return True
        if value not in cls._FALSE:
            print(f"Environment {env_name} not a boolean: {value_str}", file=sys.stderr)
        return False

    def should_trace(self) -> bool:
        """Returns True if every step of every procedure should be logged."""
        return self.trace_steps

    def should_dump_source(self) -> bool:
        """Returns True if the code generated for each procedure should be logged."""
        return self.dump_source


trace_ctrl = TraceControl()
