"""Interface for time and timers.

Controllers never read the system clock or touch the event loop's timer
queue directly, so throttle and backoff decisions can be driven by a
fake clock in tests.
"""

import abc
from typing import Callable, Protocol


class TimerHandle(Protocol):
    """Anything that can be cancelled, e.g. ``asyncio.TimerHandle``."""

    def cancel(self) -> None: ...


class Clock(abc.ABC):
    """Abstract Base Class for a time source with one-shot timers."""

    @abc.abstractmethod
    def now(self) -> float:
        """Current time in seconds."""
        pass

    @abc.abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Runs ``callback`` once after ``delay`` seconds.

        Returns:
            A handle whose ``cancel()`` prevents the callback from running.
        """
        pass
