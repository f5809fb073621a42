"""Change notification with explicit subscription handles.

An EventEmitter owns a registry of handlers. Each subscribe() call returns a
Subscription whose release happens exactly once, whether through dispose(),
a ``with`` block, or disposal of the emitter itself.
"""

from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

Handler = Callable[[T], None]

__all__ = ["EventEmitter", "Subscription"]


class Subscription:
    """Handle for a single registered handler."""

    def __init__(self, release: Optional[Callable[[], None]] = None) -> None:
        self._release = release

    @property
    def disposed(self) -> bool:
        return self._release is None

    def dispose(self) -> None:
        """Release the subscription. Calling this again does nothing."""
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


class EventEmitter(Generic[T]):
    """Synchronous event source.

    Handlers run in subscription order, in the call stack of fire(). A
    handler added while an event is being delivered first runs for the next
    event; a handler released during delivery is not called again.
    Exceptions raised by a handler propagate to the caller of fire().
    """

    def __init__(self) -> None:
        # Keyed by handle so the same callable may be subscribed twice
        self._handlers: dict[Subscription, Handler] = {}
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, handler: Handler) -> Subscription:
        """Register a handler.

        Args:
            handler: Callable invoked with each fired value

        Returns:
            Subscription handle. If the emitter is already disposed the
            handle is returned released and the handler never runs.
        """
        if self._disposed:
            return Subscription()

        subscription = Subscription()
        subscription._release = lambda: self._handlers.pop(subscription, None)
        self._handlers[subscription] = handler
        return subscription

    @property
    def event(self) -> Callable[[Handler], Subscription]:
        """The subscribe function, for handing out to consumers."""
        return self.subscribe

    def fire(self, value: T) -> None:
        if self._disposed:
            return
        for subscription, handler in list(self._handlers.items()):
            # Released by an earlier handler during this delivery
            if subscription.disposed:
                continue
            handler(value)

    def subscriber_count(self) -> int:
        return len(self._handlers)

    def dispose(self) -> None:
        """Release every subscription and stop delivering events."""
        if self._disposed:
            return
        self._disposed = True
        for subscription in list(self._handlers):
            subscription.dispose()
        self._handlers.clear()
