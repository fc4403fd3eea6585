"""py.test configuration."""
import logging

from resumable import set_logging_level
from resumable.rt.global_state.trace_ctrl import trace_ctrl


def pytest_addoption(parser):
    parser.addoption("--dump-source", action="store_true", help="log the code generated for each procedure")
    parser.addoption("--trace-steps", action="store_true", help="log every step taken by a procedure")


def pytest_configure(config):
    # Test modules define their procedures at import time, i.e., before any fixture runs.
    if config.getoption("--dump-source"):
        trace_ctrl.dump_source = True
    if config.getoption("--trace-steps"):
        trace_ctrl.trace_steps = True
    if trace_ctrl.should_dump_source() or trace_ctrl.should_trace():
        set_logging_level(logging.DEBUG)
