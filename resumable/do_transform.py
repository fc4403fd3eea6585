#!/usr/bin/env python3
"""Runs a Python file and prints the state machine generated for each procedure it defines."""
import argparse
import runpy
import sys
from typing import Dict, List

from .rt.procedure import Procedure


def find_procedures(namespace: Dict[str, object]) -> List[Procedure]:
    """Returns the procedures bound to global names of a module, in definition order."""
    procedures: List[Procedure] = []
    for value in namespace.values():
        if isinstance(value, Procedure) and value not in procedures:
            procedures.append(value)
    return procedures


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Prints the code generated for resumable procedures")
    parser.add_argument("path", help="Python file defining procedures at module level")
    parser.add_argument("--name", action="append", default=[],
                        help="only print the procedure with this name; may be repeated")
    args = parser.parse_args(argv)

    # Don't run the file's `if __name__ == "__main__":` block.
    namespace = runpy.run_path(args.path, run_name="__resumable_transform__")
    procedures = find_procedures(namespace)
    if args.name:
        procedures = [proc for proc in procedures if proc.name in args.name]

    if not procedures:
        print(f"No procedures found in {args.path}", file=sys.stderr)
        return 1

    for proc in procedures:
        print(f"# {proc.name}: {proc.state_type.NAME} state, resume markers {list(proc.markers)}")
        print(proc.source)
    return 0


if __name__ == '__main__':
    sys.exit(main())
