"""In-memory change notifier implementation."""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, List, Optional

import structlog

from shared.domain.bus import ChangeHandler, IChangeNotifier, ISubscription
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class Subscription(ISubscription):
    """Subscription handed out by ``InMemoryChangeNotifier``.

    With a ``handler`` the subscription is push-based: every published
    event is dispatched synchronously.  Without one, events are queued and
    pulled with ``poll``/``drain`` or by iterating.
    """

    def __init__(
        self,
        notifier: InMemoryChangeNotifier,
        handler: Optional[ChangeHandler] = None,
    ) -> None:
        self._notifier = notifier
        self._handler = handler
        self._queue: Deque[DomainEvent] = deque()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, event: DomainEvent) -> None:
        if not self._active:
            return
        if self._handler is None:
            self._queue.append(event)
            return
        try:
            self._handler(event)
        except Exception:
            logger.exception(
                "change_notifier.handler_failed",
                event_name=event.event_name,
                aggregate_id=event.aggregate_id,
            )

    def poll(self) -> Optional[DomainEvent]:
        if self._queue:
            return self._queue.popleft()
        return None

    def drain(self) -> list[DomainEvent]:
        events = list(self._queue)
        self._queue.clear()
        return events

    def __iter__(self) -> Iterator[DomainEvent]:
        while self._queue:
            yield self._queue.popleft()

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._queue.clear()
        self._notifier.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


class InMemoryChangeNotifier(IChangeNotifier):
    """Simple in-process change notifier."""

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: Optional[ChangeHandler] = None) -> Subscription:
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        logger.debug("change_notifier.subscribed", subscribers=len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(
                "change_notifier.unsubscribed", subscribers=len(self._subscriptions)
            )

    def publish(self, event: DomainEvent) -> None:
        # Snapshot: handlers may subscribe or dispose while we dispatch.
        for subscription in list(self._subscriptions):
            subscription.deliver(event)


# Global notifier instance (singleton)

change_notifier = InMemoryChangeNotifier()
