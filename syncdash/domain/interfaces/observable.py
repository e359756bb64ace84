"""Interface for observable state containers.

Defines the single read/write/subscribe contract shared by every store
in the synchronization layer.
"""

import abc
from typing import Any, Callable, Generic, Mapping, TypeVar

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class ObservableValue(abc.ABC, Generic[T]):
    """Abstract Base Class for a value that notifies subscribers on change."""

    @abc.abstractmethod
    def read(self) -> T:
        """Returns the current value."""
        pass

    @abc.abstractmethod
    def write(self, partial: Mapping[str, Any]) -> None:
        """Shallow-merges ``partial`` into the current value and notifies subscribers.

        Args:
            partial: Field names mapped to their new values.
        """
        pass

    @abc.abstractmethod
    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Registers ``callback`` for the current value and every later change.

        Returns:
            A function that removes the subscription.
        """
        pass
