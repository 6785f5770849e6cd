"""Multi-subscriber event notification."""

from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class EventEmitter(Generic[T]):
    """Notifies zero or more subscribers, in subscription order, per emitted event.

    Subscriber exceptions propagate to the emitter's caller.
    """

    def __init__(self):
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[T], None]:
        """Register a callback. Returns it so this can be used as a decorator."""
        self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Callable[[T], None]) -> bool:
        """Remove a callback. Returns False if it was not registered."""
        try:
            self._subscribers.remove(callback)
        except ValueError:
            return False
        return True

    def emit(self, event: T) -> None:
        for callback in list(self._subscribers):
            callback(event)

    def __len__(self) -> int:
        return len(self._subscribers)
