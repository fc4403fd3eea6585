#!/usr/bin/env python3
"""
A toy embedder: a round-robin run queue plus a list of sleeping processes.

  - SCHEDULED: the process handed itself to `Scheduler.sleep_until()` and stays parked until its tick comes;
  - WAITING: the process is still blocked; it goes back on the run queue and is retried on the next round;
  - YIELDED: the process goes to the back of the run queue.

One tick passes per step run.  Example usage: ./scheduler.py 5
"""
import argparse
from collections import deque
import heapq
import itertools
import sys
from typing import Deque, List, Tuple

from resumable import Process, Result, await_, await_extern, declare, define, init, resume, wait, yield_


class Scheduler(object):
    def __init__(self) -> None:
        self.now = 0
        self.ready: Deque[Process] = deque()
        self.sleeping: List[Tuple[int, int, Process]] = []
        self._seq = itertools.count()  # Tie-breaker so that processes themselves are never compared.

    def spawn(self, entry, state) -> None:
        self.ready.append(Process(entry, state))

    def sleep_until(self, proc: Process, tick: int) -> Result:
        """Awaited through `await_extern()`; re-run on every resumption until the tick has come."""
        if self.now >= tick:
            return Result.COMPLETE

        heapq.heappush(self.sleeping, (tick, next(self._seq), proc))
        return Result.SCHEDULED

    def _wake_sleepers(self) -> None:
        if not self.ready and self.sleeping:
            self.now = max(self.now, self.sleeping[0][0])  # Nothing to run; skip ahead.

        while self.sleeping and self.sleeping[0][0] <= self.now:
            _, _, proc = heapq.heappop(self.sleeping)
            self.ready.append(proc)

    def run(self) -> None:
        while self.ready or self.sleeping:
            self._wake_sleepers()
            proc = self.ready.popleft()
            result = resume(proc)
            self.now += 1

            if result in (Result.YIELDED, Result.WAITING):
                self.ready.append(proc)
            elif result is Result.ERROR:
                print(f"[{self.now}] {proc.entry.name} failed: {proc.state.error}")
            elif result is Result.COMPLETE:
                print(f"[{self.now}] {proc.entry.name} finished")


scheduler = Scheduler()

Producer = declare("producer", {"mailbox": None, "count": 0, "sent": 0, "wake_at": 0})
Receive = declare("receive", ["mailbox", "item"])
Consumer = declare("consumer", {"mailbox": None, "count": 0, "received": [], "rx": None})


@define(Producer)
def producer(p):
    """Puts `count` numbers into the mailbox, sleeping two ticks before each."""
    while p.sent < p.count:
        p.wake_at = scheduler.now + 2
        await_extern(scheduler.sleep_until, p.wake_at)
        p.mailbox.append(p.sent)
        print(f"[{scheduler.now}] sent {p.sent}")
        p.sent += 1


@define(Receive)
def receive(r):
    while not r.mailbox:
        wait()
    r.item = r.mailbox.pop(0)


@define(Consumer)
def consumer(c):
    while len(c.received) < c.count:
        init(c.rx, mailbox=c.mailbox)
        await_(receive, c.rx)
        c.received.append(c.rx.item)
        print(f"[{scheduler.now}] received {c.rx.item}")
        yield_()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Runs a producer and a consumer on a toy scheduler.")
    parser.add_argument("count", type=int, nargs="?", default=3, help="number of messages to pass")
    args = parser.parse_args(argv)

    mailbox: List[int] = []
    consumer_state = Consumer(mailbox=mailbox, count=args.count, rx=Receive())
    scheduler.spawn(producer, Producer(mailbox=mailbox, count=args.count))
    scheduler.spawn(consumer, consumer_state)
    scheduler.run()

    print(f"consumer received {consumer_state.received}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
