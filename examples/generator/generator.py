#!/usr/bin/env python3
"""Counts from 1 to 255, suspending after each increment; prints the counter every time it yields."""
import sys

from resumable import Result, declare, define, invoke, yield_

Generator = declare("generator", ["i"])

UCHAR_MAX = 255


@define(Generator)
def generator(g):
    g.i = 0
    while g.i != UCHAR_MAX:
        g.i += 1
        yield_()


def main():
    g = Generator()

    while invoke(generator, g) is Result.YIELDED:
        print(f"Yielded: {g.i}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
