"""Synchronous observer channels for detector events."""

from __future__ import annotations

import itertools
from typing import Callable, Dict, Generic, TypeVar

T = TypeVar("T")

Callback = Callable[[T], None]


class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`."""

    def __init__(self, channel: "EventChannel", token: int) -> None:
        self._channel = channel
        self.token = token

    @property
    def active(self) -> bool:
        return self.token in self._channel._subscribers

    def unsubscribe(self) -> bool:
        return self._channel.unsubscribe(self)


class EventChannel(Generic[T]):
    """Delivers each published record to every current subscriber.

    Delivery is synchronous and happens in the publisher's call stack; a
    subscriber that raises aborts delivery and the exception propagates.
    Subscriber ordering is not part of the contract.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: Dict[int, Callback] = {}
        self._tokens = itertools.count(1)

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callback) -> Subscription:
        token = next(self._tokens)
        self._subscribers[token] = callback
        return Subscription(self, token)

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscriber; returns False if it was already removed."""
        if subscription._channel is not self:
            return False
        return self._subscribers.pop(subscription.token, None) is not None

    def publish(self, record: T) -> None:
        # Copy so callbacks may unsubscribe themselves mid-delivery.
        for callback in list(self._subscribers.values()):
            callback(record)
