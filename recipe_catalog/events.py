"""Publish/subscribe primitives used to announce catalog changes.

:class:`EventChannel` is a multicast channel: every subscriber receives every
published payload. :class:`OneShotEvent` fires at most once and remembers it
fired, which suits the remote bootstrap completing in the background.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, List, Optional, TypeVar

from loguru import logger

from .models import Recipe

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class EventChannel(Generic[T]):
    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: List[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, payload: T) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(payload)
            except Exception:
                logger.exception("Subscriber of {!r} failed", self.name)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)


class OneShotEvent:
    """Notification that fires once; late subscribers are called immediately."""

    def __init__(self, name: str) -> None:
        self._channel: EventChannel[None] = EventChannel(name)
        self._fired = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_set(self) -> bool:
        return self._fired.is_set()

    def subscribe(self, callback: Callable[[None], None]) -> Unsubscribe:
        with self._lock:
            if not self._fired.is_set():
                return self._channel.subscribe(callback)

        try:
            callback(None)
        except Exception:
            logger.exception("Subscriber of {!r} failed", self._channel.name)
        return lambda: None

    def fire(self) -> bool:
        """Notify subscribers; returns ``False`` if the event already fired."""

        with self._lock:
            if self._fired.is_set():
                return False
            self._fired.set()

        self._channel.publish(None)
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._fired.wait(timeout)


class RecipeEvents:
    """Channels announcing successful catalog mutations."""

    def __init__(self) -> None:
        self.recipe_added: EventChannel[Recipe] = EventChannel("recipe_added")
        self.recipe_updated: EventChannel[Recipe] = EventChannel("recipe_updated")
        self.recipe_deleted: EventChannel[str] = EventChannel("recipe_deleted")
        self.catalog_loaded: EventChannel[List[Recipe]] = EventChannel("catalog_loaded")


__all__ = ["EventChannel", "OneShotEvent", "RecipeEvents", "Unsubscribe"]
