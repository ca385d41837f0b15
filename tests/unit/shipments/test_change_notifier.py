"""Unit tests for the in-process change notifier."""

from __future__ import annotations

import pytest

from modules.shipments.events import removed
from shared.infrastructure.bus import InMemoryChangeNotifier

pytestmark = pytest.mark.unit


def test_push_subscription_receives_events_in_order(notifier):
    received = []
    notifier.subscribe(received.append)

    first, second = removed("OM000000001"), removed("OM000000002")
    notifier.publish(first)
    notifier.publish(second)

    assert received == [first, second]


def test_pull_subscription_is_lazy_and_not_restartable(notifier):
    subscription = notifier.subscribe()
    events = [removed(f"OM00000000{i}") for i in range(3)]
    for event in events:
        notifier.publish(event)

    assert subscription.poll() == events[0]
    assert list(subscription) == events[1:]
    assert list(subscription) == []
    assert subscription.poll() is None


def test_disposed_subscription_gets_nothing(notifier):
    received = []
    subscription = notifier.subscribe(received.append)
    subscription.dispose()
    subscription.dispose()

    notifier.publish(removed("OM000000001"))

    assert received == []
    assert not subscription.active
    assert notifier.subscriber_count == 0


def test_context_manager_disposes(notifier):
    with notifier.subscribe() as subscription:
        notifier.publish(removed("OM000000001"))
        assert len(subscription.drain()) == 1
    notifier.publish(removed("OM000000002"))
    assert subscription.drain() == []


def test_failing_handler_does_not_block_others():
    notifier = InMemoryChangeNotifier()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    notifier.subscribe(broken)
    notifier.subscribe(received.append)
    notifier.publish(removed("OM000000001"))

    assert len(received) == 1


def test_handler_may_dispose_during_dispatch(notifier):
    received = []
    holder = {}

    def once(event):
        received.append(event)
        holder["sub"].dispose()

    holder["sub"] = notifier.subscribe(once)
    notifier.publish(removed("OM000000001"))
    notifier.publish(removed("OM000000002"))

    assert len(received) == 1
