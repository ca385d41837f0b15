"""Domain bus interfaces for in-process change notification."""

from __future__ import annotations

from typing import Callable, Iterator, Optional, Protocol

from shared.domain.events import DomainEvent

ChangeHandler = Callable[[DomainEvent], None]


class ISubscription(Protocol):
    """A live, disposable feed of change events.

    Events are consumed lazily; a consumed event is gone (the feed is not
    restartable).  Once disposed, nothing is queued or dispatched anymore.
    """

    @property
    def active(self) -> bool: ...

    def poll(self) -> Optional[DomainEvent]: ...

    def drain(self) -> list[DomainEvent]: ...

    def __iter__(self) -> Iterator[DomainEvent]: ...

    def dispose(self) -> None: ...


class IChangeNotifier(Protocol):
    """Change notifier interface."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(self, handler: Optional[ChangeHandler] = None) -> ISubscription: ...
