#!/usr/bin/env python3
"""
This script runs integration tests, i.e.,
  - defines procedures that suspend, nest and fail,
  - drives them the way an embedder would (invoking the root until it reaches a terminal result), and
  - verifies the results returned by each step as well as the final states.

Example usage:
    pytest test_integration.py -v
    pytest test_integration.py -v --trace-steps          # Log every step taken by a procedure.
    pytest test_integration.py -k "TestAwait and depth"  # Run the nesting tests only.
"""
import copy
from enum import Enum, auto
from pathlib import Path
import runpy
from typing import List, Optional

import pytest

from resumable import (DONE, Process, Result, State, await_, await_extern, declare, define, fail, init, invoke,
                       resume, wait, yield_)

EXAMPLES_DIR = Path(__file__).parent / "examples"


class Blocking(Enum):
    """How a leaf that cannot make progress suspends.  Both are propagated to the root unchanged."""
    WAITING = auto()
    SCHEDULED = auto()

    def __str__(self):
        """Returns a shorter string representation of enum values (e.g., "WAITING" instead of "Blocking.WAITING")."""
        return self.name

    @property
    def result(self) -> Result:
        return Result[self.name]


# A short hand for parametrizing a test by the way a leaf blocks.
parametrize_blocking = pytest.mark.parametrize("blocking", list(Blocking))


def run_to_end(entry, state: State, max_steps: int = 10000) -> List[Result]:
    """Invokes a procedure until it reaches a terminal result; returns the result of every step."""
    results = []
    for _ in range(max_steps):
        result = invoke(entry, state)
        results.append(result)
        if result.terminal:
            return results
    raise AssertionError(f"{entry.name} did not finish within {max_steps} steps")


# Procedures used below.
Sum = declare("sum", {"n": 0, "total": 0})
Loop = declare("loop", {"n": 0, "i": 0})
Scan = declare("scan", {"items": (), "item": None, "seen": [], "kinds": []})
Parent = declare("parent", {"child": None, "steps": 0})
Nest = declare("nest", {"depth": 0, "child": None, "after": False})
Chain = declare("chain", {"depth": 0, "gate": None, "child": None, "steps": 0})
Probe = declare("probe", ["seen"])


@define(Sum)
def straight(s):
    s.total = sum(range(s.n + 1))


@define(Loop)
def loop(lp):
    lp.i = 0
    while lp.i < lp.n:
        lp.i += 1
        yield_()


@define(Scan)
def scan(s):
    for s.item in s.items:
        if s.item is None:
            continue
        elif s.item == "stop":
            break
        elif s.item % 2:
            s.kinds.append("odd")
            yield_()
        else:
            s.kinds.append("even")
        s.seen.append(s.item)
        wait()


@define(Loop)
def early_exit(lp):
    while True:
        lp.i += 1
        if lp.i == lp.n:
            return
        yield_()


@define(Parent)
def parent(p):
    await_(loop, p.child)
    p.steps += 1
    yield_()


@define(Nest)
def nest(n):
    if n.depth == 0:
        fail(f"failed at depth {n.depth}")
    n.child = Nest(depth=n.depth - 1)
    await_(nest, n.child)
    n.after = True


class Gate(object):
    """Stands in for an external resource: blocks every caller until opened."""

    def __init__(self, blocking: Blocking) -> None:
        self.blocking = blocking
        self.is_open = False
        self.callers: List[Process] = []

    def enter(self, proc: Process) -> Result:
        self.callers.append(proc)
        return Result.COMPLETE if self.is_open else self.blocking.result


@define(Chain)
def chain(ch):
    if ch.depth == 0:
        await_extern(ch.gate.enter)
    else:
        ch.child = Chain(depth=ch.depth - 1, gate=ch.gate)
        await_(chain, ch.child)
    ch.steps += 1


@define(Probe)
def probe(s, proc):
    s.seen = proc


@define(Parent)
def probe_parent(p):
    await_(probe, p.child)


def _leaf(state: Nest) -> Nest:
    """Follows the chain of child states down to the deepest one."""
    while state.child is not None:
        state = state.child
    return state


class TestSteps(object):
    def test_single_step(self):
        s = Sum(n=4)
        assert invoke(straight, s) is Result.COMPLETE
        assert s.total == 10
        assert s.marker == DONE

    @pytest.mark.parametrize("k", [0, 1, 5])
    def test_yield_count(self, k: int):
        results = run_to_end(loop, Loop(n=k))
        assert results == [Result.YIELDED] * k + [Result.COMPLETE]

    def test_state_fidelity(self):
        """The marker and the fields determine the rest of the run, whichever object they live in."""
        lp = Loop(n=4)
        invoke(loop, lp)
        invoke(loop, lp)

        clone = copy.deepcopy(lp)
        assert run_to_end(loop, clone) == run_to_end(loop, lp)
        assert clone.fields() == lp.fields() == {"n": 4, "i": 4}

    def test_fields_survive_suspension(self):
        lp = Loop(n=3)
        for expected in (1, 2, 3):
            assert invoke(loop, lp) is Result.YIELDED
            assert lp.i == expected

    def test_early_return(self):
        results = run_to_end(early_exit, Loop(n=3))
        assert results == [Result.YIELDED, Result.YIELDED, Result.COMPLETE]

    def test_control_flow(self):
        s = Scan(items=[1, None, 2, 3, "stop", 4])
        assert run_to_end(scan, s) == [
            Result.YIELDED, Result.WAITING,  # 1
            Result.WAITING,                  # 2
            Result.YIELDED, Result.WAITING,  # 3
            Result.COMPLETE,                 # stop
        ]
        assert s.kinds == ["odd", "even", "odd"]
        assert s.seen == [1, 2, 3]
        assert s.item == "stop"

    def test_restart(self):
        lp = Loop(n=5)
        invoke(loop, lp)
        invoke(loop, lp)
        assert lp.i == 2

        init(lp, n=2)
        assert run_to_end(loop, lp) == [Result.YIELDED, Result.YIELDED, Result.COMPLETE]
        assert lp.i == 2

    def test_restart_discards_loop_iterators(self):
        s = Scan(items=[1, 3])
        assert invoke(scan, s) is Result.YIELDED

        init(s, items=[2])
        assert run_to_end(scan, s) == [Result.WAITING, Result.COMPLETE]
        assert s.seen == [2]


class TestAwait(object):
    def test_yield_falls_through(self):
        p = Parent(child=Loop(n=2))

        assert invoke(parent, p) is Result.YIELDED
        assert p.steps == 1
        assert p.child.i == 1
        assert not p.child.done

        assert invoke(parent, p) is Result.COMPLETE
        assert p.steps == 1

    def test_complete_falls_through(self):
        p = Parent(child=Loop(n=0))
        assert invoke(parent, p) is Result.YIELDED
        assert p.child.done
        assert p.steps == 1

    @pytest.mark.parametrize("depth", [0, 1, 4])
    def test_error_propagation(self, depth: int):
        root = Nest(depth=depth)
        assert invoke(nest, root) is Result.ERROR

        leaf = _leaf(root)
        assert leaf.error == "failed at depth 0"
        assert leaf.done

        # No code after an await ran, and only the leaf recorded the error.
        state: Optional[Nest] = root
        while state is not None:
            assert not state.after
            if state is not leaf:
                assert state.error is None
                assert not state.done
            state = state.child

    @parametrize_blocking
    @pytest.mark.parametrize("depth", [0, 1, 3])
    def test_blocking_propagation(self, blocking: Blocking, depth: int):
        gate = Gate(blocking)
        root = Chain(depth=depth, gate=gate)

        assert invoke(chain, root) is blocking.result
        assert root.steps == 0

        # Resuming the root re-enters the leaf, which is still blocked.
        assert invoke(chain, root) is blocking.result
        assert len(gate.callers) == 2

        gate.is_open = True
        assert invoke(chain, root) is Result.COMPLETE
        assert len(gate.callers) == 3

        state = root
        while state is not None:
            assert state.steps == 1
            state = state.child

    @parametrize_blocking
    def test_process_handle(self, blocking: Blocking):
        """The handle passed down to awaited functions points to the root of the call tree."""
        gate = Gate(blocking)
        root = Chain(depth=2, gate=gate)
        invoke(chain, root)

        proc = gate.callers[-1]
        assert proc.entry is chain
        assert proc.state is root

        gate.is_open = True
        assert resume(proc) is Result.COMPLETE

    def test_process_parameter(self):
        p = Parent(child=Probe())
        assert invoke(probe_parent, p) is Result.COMPLETE
        assert p.child.seen == Process(probe_parent, p)

    def test_extern_must_return_result(self):
        @define(Loop)
        def bad_extern(lp):
            await_extern(lambda proc: None)

        with pytest.raises(TypeError, match="should return a Result"):
            invoke(bad_extern, Loop())


class TestClosures(object):
    def test_free_variables(self):
        def make(limit: int):
            @define(Loop)
            def bounded(lp):
                while lp.i < limit:
                    lp.i += 1
                    yield_()
            return bounded

        assert run_to_end(make(2), Loop()) == [Result.YIELDED, Result.YIELDED, Result.COMPLETE]

    def test_cells_are_shared(self):
        limit = 1

        @define(Loop)
        def bounded(lp):
            while lp.i < limit:
                lp.i += 1
                yield_()

        limit = 3
        assert run_to_end(bounded, Loop()) == [Result.YIELDED] * 3 + [Result.COMPLETE]

    def test_primitive_alias(self):
        pause = yield_

        @define(Loop)
        def aliased(lp):
            lp.i = 1
            pause()
            lp.i = 2

        lp = Loop()
        assert invoke(aliased, lp) is Result.YIELDED
        assert lp.i == 1
        assert invoke(aliased, lp) is Result.COMPLETE
        assert lp.i == 2


class TestExamples(object):
    @staticmethod
    def _load(*parts: str) -> dict:
        """Runs an example file without its `__main__` block; returns its globals."""
        return runpy.run_path(str(EXAMPLES_DIR.joinpath(*parts)), run_name="example")

    def test_generator(self, capsys):
        namespace = self._load("generator", "generator.py")
        assert namespace["main"]() == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == [f"Yielded: {i}" for i in range(1, 256)]

    def test_scheduler(self, capsys):
        namespace = self._load("scheduler", "scheduler.py")
        assert namespace["main"](["3"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[-1] == "consumer received [0, 1, 2]"
        assert any(line.endswith("producer finished") for line in lines)
        assert any(line.endswith("consumer finished") for line in lines)
