"""
Example: Deferred fluent chains with Chainsaw

This example shows how operations are queued and run one at a time,
how nest() suspends the parent chain while a sub-chain runs, and how a
recording chain can be replayed with jump().
"""

import asyncio
import logging

from chainsaw import LoggingHook, chainsaw, controller, use_tracing

# =============================================================================
# 1. A builder: the operations every chain instance exposes
# =============================================================================


class Tally:
    """An accumulator held outside of the chain."""

    def __init__(self) -> None:
        self.total = 0

    def build(self, saw):
        h = saw.handlers

        @h.operation
        def add(n):
            """Add n to the running total, then let the next call run."""
            self.total += n
            saw.next()

        @h.operation("do")
        def do_(cb):
            """Run cb against a nested chain; resume when it finishes."""
            saw.nest(cb, self.total)

        @h.group("io").operation("print")
        def print_(label):
            print(f"{label}: {self.total}")
            saw.next()


# =============================================================================
# 2. Nesting: the parent waits for the sub-chain
# =============================================================================


def cap(ch, total):
    """Bring the total back down if it went over 12."""
    if total > 12:
        ch.add(-10)


async def nesting() -> None:
    tally = Tally()
    ch = chainsaw(tally.build)
    ch.add(5).add(10).do(cap).io.print("after cap")
    await controller(ch).wait()  # after cap: 5


# =============================================================================
# 3. Replay: run the recorded chain again from step 1
# =============================================================================


async def replay() -> None:
    tally = Tally()
    ch = chainsaw(tally.build).add(1).add(2).io.print("first run")
    saw = controller(ch)
    await saw.wait()  # first run: 3
    saw.jump(1)  # first run: 5  (add(2) and print run again)


# =============================================================================
# 4. Tracing every operation through the logging module
# =============================================================================


async def traced() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s %(message)s")
    tally = Tally()
    with use_tracing(LoggingHook(logging.getLogger("example"))):
        ch = chainsaw(tally.build).add(3).do(lambda c, t: c.add(t))
    await controller(ch).wait()


if __name__ == "__main__":
    asyncio.run(nesting())
    asyncio.run(replay())
    asyncio.run(traced())
