"""
Client Transport
================

WebSocket connection from a client to the relay server.

This module provides the WebSocketTransport class which:
    - Opens one persistent connection to the relay's /ws endpoint
    - Sends JSON messages
    - Parses inbound JSON into RelayEvents and publishes them in order
    - Notifies close listeners when the connection ends

Design Rules:
    - No reconnection: a dropped socket is reported, the caller reconnects
    - Unparseable events are logged and skipped
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, InvalidHandshake

from gemini_relay.errors import MessageFormatError, TransportError
from gemini_relay.models.events import RelayEvent
from gemini_relay.relay.events import EventChannel


logger = logging.getLogger(__name__)


CloseListener = Callable[[str], Awaitable[None]]


class Transport(Protocol):
    """What the ClientCoordinator needs from a connection."""

    events: EventChannel

    @property
    def is_connected(self) -> bool:
        ...

    async def connect(self) -> None:
        ...

    async def send(self, message: dict) -> None:
        ...

    async def close(self) -> None:
        ...

    def subscribe_close(self, listener: CloseListener) -> Callable[[], None]:
        ...


class WebSocketTransport:
    """
    Client side of the relay socket.

    Attributes:
        url: Relay WebSocket URL
        events: Channel receiving every RelayEvent from the server

    Example:
        transport = WebSocketTransport("ws://localhost:5000/ws")
        transport.events.subscribe(print_event)

        await transport.connect()
        await transport.send({"type": "connect_gemini"})
        ...
        await transport.close()
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.events = EventChannel()

        self._websocket: Optional[Any] = None
        self._receiver: Optional[asyncio.Task] = None
        self._close_listeners: List[CloseListener] = []
        self._connected: bool = False

    @property
    def is_connected(self) -> bool:
        """Whether the socket is open."""
        return self._connected

    def subscribe_close(self, listener: CloseListener) -> Callable[[], None]:
        """
        Register a coroutine called with a reason when the socket closes.

        Returns:
            Callable that removes the listener
        """
        self._close_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._close_listeners:
                self._close_listeners.remove(listener)

        return unsubscribe

    async def connect(self) -> None:
        """
        Open the socket and start receiving events.

        Raises:
            TransportError: If the server cannot be reached
        """
        if self._connected:
            logger.warning("Transport already connected")
            return

        try:
            self._websocket = await websockets.connect(
                self.url,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
                max_size=None,
            )
        except (OSError, InvalidHandshake, asyncio.TimeoutError) as e:
            raise TransportError(f"Cannot connect to relay at {self.url}: {e}") from e

        self._connected = True
        logger.info(f"Connected to relay server: {self.url}")
        self._receiver = asyncio.create_task(self._receive_loop(), name="relay_transport")

    async def send(self, message: dict) -> None:
        """
        Send one JSON message.

        Raises:
            TransportError: If the socket is not open or the write fails
        """
        if not self._connected or self._websocket is None:
            raise TransportError("Not connected to relay server")
        try:
            await self._websocket.send(json.dumps(message))
        except ConnectionClosed as e:
            raise TransportError(f"Relay connection closed: {e}") from e

    async def close(self) -> None:
        """Close the socket and stop the receiver."""
        websocket = self._websocket
        if websocket is None:
            return

        await websocket.close()

        if self._receiver is not None and self._receiver is not asyncio.current_task():
            try:
                await asyncio.wait_for(self._receiver, timeout=5.0)
            except asyncio.TimeoutError:
                self._receiver.cancel()
        self._receiver = None

    async def _receive_loop(self) -> None:
        reason = "Connection closed"
        try:
            async for raw in self._websocket:
                await self._dispatch(raw)
        except ConnectionClosedOK:
            logger.info("Relay connection closed normally")
        except ConnectionClosed as e:
            reason = f"Connection lost: {e}"
            logger.warning(f"Relay connection closed: {e}")
        finally:
            self._connected = False
            self._websocket = None

        for listener in list(self._close_listeners):
            try:
                await listener(reason)
            except Exception as e:
                logger.error(f"Close listener failed: {e}")

    async def _dispatch(self, raw) -> None:
        try:
            event = RelayEvent.from_wire(json.loads(raw))
        except (json.JSONDecodeError, MessageFormatError) as e:
            logger.warning(f"Skipping unparseable event: {e}")
            return
        await self.events.publish(event)
