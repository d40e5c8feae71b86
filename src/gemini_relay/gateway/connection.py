"""
Connection Gateway
==================

One accepted WebSocket bound to one SessionRelay.

This module provides the ConnectionGateway class which:
    - Decodes inbound JSON messages and dispatches them to the relay
    - Forwards every relay event to the socket as JSON
    - Converts any RelayError into an ``error`` event
    - Disconnects and releases the relay when the socket goes away

Design Rules:
    - Inbound messages are handled one at a time, in arrival order
    - No exception from the relay crosses the transport
    - A malformed message produces an ``error`` event, the socket stays open
"""

import logging
from typing import Callable, Optional, Union

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from gemini_relay.errors import MessageFormatError, RelayError
from gemini_relay.models.events import RelayEvent
from gemini_relay.models.messages import (
    ConnectMessage,
    DisconnectMessage,
    SendTextMessage,
    SendTextWithFrameSequenceMessage,
    parse_inbound,
)
from gemini_relay.relay.session import SessionRelay


logger = logging.getLogger(__name__)


class ConnectionGateway:
    """
    Per-connection bridge between a WebSocket and a SessionRelay.

    Attributes:
        connection_id: Identifier used in log lines
        relay: SessionRelay owned by this connection
        messages_received: Inbound messages handled
        events_sent: Outbound events written to the socket

    Example:
        @app.websocket("/ws")
        async def ws(websocket: WebSocket):
            await websocket.accept()
            gateway = ConnectionGateway(websocket, relay, "conn-1")
            await gateway.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        relay: SessionRelay,
        connection_id: str,
    ) -> None:
        self.websocket = websocket
        self.relay = relay
        self.connection_id = connection_id

        self.messages_received: int = 0
        self.events_sent: int = 0

        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self) -> None:
        """
        Serve the socket until the client goes away.

        The socket must already be accepted.
        """
        self._unsubscribe = self.relay.events.subscribe(self._send_event)
        logger.info(f"[{self.connection_id}] Client connected")

        try:
            while not self._closed:
                raw = await self._receive()
                if raw is None:
                    break
                await self.dispatch(raw)
        except WebSocketDisconnect:
            pass
        finally:
            logger.info(f"[{self.connection_id}] Client disconnected")
            await self.close()

    async def dispatch(self, raw: Union[str, bytes, dict]) -> None:
        """
        Handle one inbound message.

        Args:
            raw: JSON text, bytes, or a decoded dict
        """
        self.messages_received += 1
        try:
            message = parse_inbound(raw)
            await self._handle(message)
        except MessageFormatError as e:
            logger.warning(f"[{self.connection_id}] Rejected message: {e}")
            await self._send_event(RelayEvent.error(str(e)))
        except RelayError as e:
            logger.warning(f"[{self.connection_id}] {type(e).__name__}: {e}")
            await self._send_event(RelayEvent.error(str(e)))

    async def close(self) -> None:
        """Disconnect the upstream session and stop forwarding events."""
        if self._closed:
            return
        self._closed = True

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        await self.relay.disconnect()
        self.relay.events.clear()

    async def shutdown(self, code: int = 1001) -> None:
        """Close the relay and the socket (server shutdown)."""
        await self.close()
        if self.websocket.application_state != WebSocketState.DISCONNECTED:
            try:
                await self.websocket.close(code=code)
            except RuntimeError as e:
                logger.debug(f"[{self.connection_id}] Socket already closed: {e}")

    async def _handle(self, message) -> None:
        if isinstance(message, ConnectMessage):
            await self.relay.connect(message.system_instruction)

        elif isinstance(message, SendTextMessage):
            await self.relay.send_text(message.text)

        elif isinstance(message, SendTextWithFrameSequenceMessage):
            logger.info(
                f"[{self.connection_id}] Frame sequence: totalFrames={message.total_frames}, "
                f"totalSize={message.total_size}"
            )
            await self.relay.send_text_with_frames(
                message.text,
                message.frames,
                total_frames=message.total_frames,
                total_size=message.total_size,
            )

        elif isinstance(message, DisconnectMessage):
            await self.relay.disconnect()

    async def _receive(self) -> Optional[Union[str, bytes]]:
        """Next text or binary payload, or None once the client disconnects."""
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            return None
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes")

    async def _send_event(self, event: RelayEvent) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            logger.debug(
                f"[{self.connection_id}] Socket closed, dropping '{event.type.value}' event"
            )
            return
        await self.websocket.send_json(event.to_wire())
        self.events_sent += 1
