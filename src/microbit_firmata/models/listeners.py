"""Ordered event and update listeners with synchronous fan-out."""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

EventListener = Callable[[int, int], None]
UpdateListener = Callable[[], None]


class ListenerRegistry:
    """Holds listeners in registration order.

    Event listeners receive ``(source_id, event_id)`` for every DAL event the
    board reports. Update listeners take no arguments and are called once per
    analog channel update; they read the new values from the device state.
    """

    def __init__(self) -> None:
        self.event_listeners: list[EventListener] = []
        self.update_listeners: list[UpdateListener] = []

    def add_event_listener(self, listener: EventListener) -> None:
        self.event_listeners.append(listener)

    def add_update_listener(self, listener: UpdateListener) -> None:
        self.update_listeners.append(listener)

    def remove_event_listener(self, listener: EventListener) -> None:
        """Remove the first registration of ``listener``, if present."""
        if listener in self.event_listeners:
            self.event_listeners.remove(listener)

    def remove_update_listener(self, listener: UpdateListener) -> None:
        if listener in self.update_listeners:
            self.update_listeners.remove(listener)

    def notify_event(self, source_id: int, event_id: int) -> None:
        # iterate a copy so listeners may register others while being notified
        for listener in list(self.event_listeners):
            try:
                listener(source_id, event_id)
            except Exception:
                logger.exception(
                    "Event listener %r failed for event (%d, %d)",
                    listener,
                    source_id,
                    event_id,
                )

    def notify_update(self) -> None:
        for listener in list(self.update_listeners):
            try:
                listener()
            except Exception:
                logger.exception("Update listener %r failed", listener)
