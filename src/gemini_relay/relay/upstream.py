"""
Upstream Client
===============

Adapter between the SessionRelay and the hosted Gemini Live API.

The relay only depends on the small callback-driven contract defined here:

    handle = await client.connect(model, config, callbacks)
    await handle.send_content(turn)
    await handle.close()

Callbacks (all coroutine functions):
    on_open()            session is ready for turns
    on_message(dict)     one streamed server message, camelCase keys
    on_error(error)      session failed; no further callbacks
    on_close(reason)     session ended cleanly; no further callbacks

GenAILiveClient implements the contract with the google-genai SDK.

Design Rules:
    - Callbacks stop firing once close() has been called
    - close() is idempotent
    - Every SDK failure surfaces as UpstreamError
"""

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from gemini_relay.errors import UpstreamError
from gemini_relay.relay.turn import InlineImagePart, TextPart, Turn


logger = logging.getLogger(__name__)


# =============================================================================
# Contract
# =============================================================================

@dataclass
class UpstreamConfig:
    """
    Session options understood by the upstream API.

    Attributes:
        system_instruction: Instruction applied for the whole session
        response_modalities: Response modalities (text-only for this relay)
    """

    system_instruction: str = ""
    response_modalities: List[str] = field(default_factory=lambda: ["TEXT"])


@dataclass
class UpstreamCallbacks:
    """Coroutine callbacks fired by an upstream session."""

    on_open: Callable[[], Awaitable[None]]
    on_message: Callable[[Dict[str, Any]], Awaitable[None]]
    on_error: Callable[[UpstreamError], Awaitable[None]]
    on_close: Callable[[str], Awaitable[None]]


class UpstreamSession(Protocol):
    """Handle to one open upstream conversation."""

    async def send_content(self, turn: Turn) -> None:
        """Submit a complete turn."""
        ...

    async def close(self) -> None:
        """Close the conversation."""
        ...


class UpstreamClient(Protocol):
    """Factory for upstream sessions."""

    async def connect(
        self,
        model: str,
        config: UpstreamConfig,
        callbacks: UpstreamCallbacks,
    ) -> UpstreamSession:
        """
        Open a session and start streaming messages to callbacks.

        Raises:
            UpstreamError: If the session cannot be opened
        """
        ...


# =============================================================================
# google-genai implementation
# =============================================================================

def _message_to_dict(message: Any) -> Dict[str, Any]:
    """Convert an SDK LiveServerMessage into a camelCase dict."""
    if isinstance(message, dict):
        return message
    return message.model_dump(mode="json", by_alias=True, exclude_none=True)


def _turn_to_content(turn: Turn) -> types.Content:
    """Map a Turn onto SDK Content, preserving part order."""
    parts = []
    for part in turn.parts:
        if isinstance(part, TextPart):
            parts.append(types.Part(text=part.text))
        elif isinstance(part, InlineImagePart):
            try:
                data = base64.b64decode(part.data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise UpstreamError(f"Invalid base64 frame data: {e}")
            parts.append(
                types.Part(inline_data=types.Blob(data=data, mime_type=part.mime_type))
            )
    return types.Content(role="user", parts=parts)


class GenAILiveSession:
    """
    One Gemini Live session opened through google-genai.

    Owns the SDK connection context and a receiver task that forwards
    every server message to the callbacks.
    """

    def __init__(
        self,
        context: Any,
        session: Any,
        callbacks: UpstreamCallbacks,
    ) -> None:
        self._context = context
        self._session = session
        self._callbacks = callbacks
        self._closed: bool = False
        self._task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the receiver task."""
        self._task = asyncio.create_task(self._receive_loop(), name="genai_receiver")

    async def send_content(self, turn: Turn) -> None:
        if self._closed:
            raise UpstreamError("Session is closed")

        content = _turn_to_content(turn)
        try:
            await self._session.send_client_content(
                turns=content,
                turn_complete=turn.turn_complete,
            )
        except Exception as e:
            raise UpstreamError(f"Failed to send turn: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        try:
            await self._context.__aexit__(None, None, None)
        except Exception as e:
            raise UpstreamError(f"Error closing session: {e}") from e
        logger.info("Gemini Live session closed")

    async def _receive_loop(self) -> None:
        """Forward server messages until the connection ends."""
        try:
            while not self._closed:
                received = 0
                # receive() yields one model turn and returns after turnComplete
                async for message in self._session.receive():
                    if self._closed:
                        return
                    received += 1
                    await self._callbacks.on_message(_message_to_dict(message))

                if received == 0:
                    if not self._closed:
                        await self._callbacks.on_close("Connection closed")
                    return

        except asyncio.CancelledError:
            raise
        except ConnectionClosedOK as e:
            if not self._closed:
                await self._callbacks.on_close(e.reason or "Connection closed")
        except Exception as e:
            if not self._closed:
                code = getattr(e, "code", None)
                await self._callbacks.on_error(
                    UpstreamError(str(e), code=str(code) if code is not None else None)
                )


class GenAILiveClient:
    """
    UpstreamClient backed by google-genai's async Live API.

    The SDK client is built on first connect, so a missing key surfaces
    as an UpstreamError on that connect rather than at startup.

    Args:
        api_key: Gemini API key
        api_version: Live API version (e.g. "v1beta")
    """

    def __init__(self, api_key: str, api_version: str = "v1beta") -> None:
        self._api_key = api_key
        self._api_version = api_version
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            try:
                self._client = genai.Client(
                    api_key=self._api_key,
                    http_options={"api_version": self._api_version},
                )
            except ValueError as e:
                raise UpstreamError(f"Invalid Gemini client configuration: {e}") from e
        return self._client

    async def connect(
        self,
        model: str,
        config: UpstreamConfig,
        callbacks: UpstreamCallbacks,
    ) -> GenAILiveSession:
        client = self._get_client()
        live_config = types.LiveConnectConfig(
            response_modalities=[types.Modality(m) for m in config.response_modalities],
            system_instruction=config.system_instruction or None,
        )

        logger.info(f"Creating Gemini Live session (model={model}, api={self._api_version})")
        context = client.aio.live.connect(model=model, config=live_config)
        try:
            session = await context.__aenter__()
        except Exception as e:
            logger.error(f"Failed to create Gemini Live session: {e}")
            raise UpstreamError(f"Failed to connect to Gemini: {e}") from e

        handle = GenAILiveSession(context, session, callbacks)
        await callbacks.on_open()
        handle.start()
        return handle
