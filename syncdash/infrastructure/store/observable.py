"""Concrete implementation of the ObservableValue interface.

An Atom holds one immutable value (a frozen dataclass or a dict) and
replaces it wholesale on every write.
"""

import dataclasses
import logging
from typing import Any, Callable, Generic, List, Mapping, TypeVar

from syncdash.domain.interfaces.observable import ObservableValue, Unsubscribe

logger = logging.getLogger(__name__)

T = TypeVar("T")


def merge(value: Any, partial: Mapping[str, Any]) -> Any:
    """Returns a new value with ``partial`` shallow-merged into ``value``."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.replace(value, **partial)
    if isinstance(value, Mapping):
        return {**value, **partial}
    raise TypeError(f"Cannot merge fields into value of type {type(value).__name__}")


class Atom(ObservableValue[T], Generic[T]):
    """Single observable value with synchronous subscriber notification."""

    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: List[Callable[[T], None]] = []

    def read(self) -> T:
        return self._value

    def write(self, partial: Mapping[str, Any]) -> None:
        self.replace(merge(self._value, partial))

    def replace(self, value: T) -> None:
        """Sets a new value and notifies every subscriber."""
        self._value = value
        self._notify()

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        self._subscribers.append(callback)
        self._deliver(callback, self._value)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        # Copy: a callback may unsubscribe while we iterate
        for callback in list(self._subscribers):
            self._deliver(callback, self._value)

    @staticmethod
    def _deliver(callback: Callable[[Any], None], value: Any) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception(f"Store subscriber {callback!r} raised; continuing delivery.")
