"""
Event Channel
=============

Multi-subscriber publish channel for RelayEvents.

Listeners are coroutine functions. publish() awaits each listener in
subscription order, so events reach every listener in the order they were
published. A failing listener is logged and does not stop delivery to the
others.
"""

import logging
from typing import Awaitable, Callable, List

from gemini_relay.models.events import RelayEvent


logger = logging.getLogger(__name__)


Listener = Callable[[RelayEvent], Awaitable[None]]


class EventChannel:
    """
    Ordered list of async listeners for RelayEvents.

    Example:
        channel = EventChannel()
        unsubscribe = channel.subscribe(send_to_socket)

        await channel.publish(RelayEvent.turn_complete())
        unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    @property
    def listener_count(self) -> int:
        """Number of subscribed listeners."""
        return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Add a listener.

        Args:
            listener: Coroutine function receiving each RelayEvent

        Returns:
            Callable that removes this listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        """Remove a listener if present."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def clear(self) -> None:
        """Remove all listeners."""
        self._listeners.clear()

    async def publish(self, event: RelayEvent) -> None:
        """
        Deliver event to every listener.

        Events published with no listeners are dropped.
        """
        if not self._listeners:
            logger.debug(f"No listeners for event '{event.type.value}', dropped")
            return

        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(f"Listener failed for event '{event.type.value}': {e}")
