"""Clock backed by the running asyncio event loop."""

import asyncio
import time
from typing import Callable

from syncdash.domain.interfaces.clock import Clock, TimerHandle


class LoopClock(Clock):
    """Wall-clock time plus ``loop.call_later`` timers.

    Must be used from inside a running event loop.
    """

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(max(0.0, delay), callback)
