"""
Upstream Adapter Tests
======================

Turn-to-SDK mapping and the google-genai session receiver, exercised
with mocks instead of a live endpoint.
"""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import types

from gemini_relay.errors import UpstreamError
from gemini_relay.relay.turn import InlineImagePart, TextPart, Turn
from gemini_relay.relay.upstream import (
    GenAILiveClient,
    GenAILiveSession,
    UpstreamCallbacks,
    UpstreamConfig,
    _turn_to_content,
)


def make_callbacks() -> UpstreamCallbacks:
    return UpstreamCallbacks(
        on_open=AsyncMock(),
        on_message=AsyncMock(),
        on_error=AsyncMock(),
        on_close=AsyncMock(),
    )


class ScriptedSession:
    """Stands in for an SDK AsyncSession: each receive() yields one batch."""

    def __init__(self, batches, error=None):
        self._batches = list(batches)
        self._error = error
        self.sent = []

    async def receive(self):
        if not self._batches:
            if self._error is not None:
                raise self._error
            return
        for message in self._batches.pop(0):
            yield message

    async def send_client_content(self, turns=None, turn_complete=True):
        self.sent.append((turns, turn_complete))


class TestTurnToContent:
    """Tests for Turn -> types.Content mapping."""

    def test_text_then_images(self):
        payload = b"\xff\xd8jpeg"
        turn = Turn(parts=(
            TextPart(text="what is this?"),
            InlineImagePart(data=base64.b64encode(payload).decode(), mime_type="image/jpeg"),
        ))

        content = _turn_to_content(turn)

        assert content.role == "user"
        assert content.parts[0].text == "what is this?"
        assert content.parts[1].inline_data.data == payload
        assert content.parts[1].inline_data.mime_type == "image/jpeg"

    def test_invalid_base64(self):
        turn = Turn(parts=(TextPart(text="x"), InlineImagePart(data="@@not base64@@", mime_type="image/jpeg")))
        with pytest.raises(UpstreamError):
            _turn_to_content(turn)


class TestGenAILiveSession:
    """Tests for the receiver loop and close semantics."""

    async def test_forwards_messages_then_closes(self):
        callbacks = make_callbacks()
        session = ScriptedSession([[{"text": "a"}, {"serverContent": {"turnComplete": True}}]])
        handle = GenAILiveSession(MagicMock(), session, callbacks)

        handle.start()
        await asyncio.sleep(0.05)

        assert callbacks.on_message.await_count == 2
        callbacks.on_message.assert_any_await({"text": "a"})
        callbacks.on_close.assert_awaited_once()
        callbacks.on_error.assert_not_awaited()

    async def test_receiver_error_reported(self):
        callbacks = make_callbacks()
        session = ScriptedSession([], error=RuntimeError("stream reset"))
        handle = GenAILiveSession(MagicMock(), session, callbacks)

        handle.start()
        await asyncio.sleep(0.05)

        callbacks.on_error.assert_awaited_once()
        error = callbacks.on_error.await_args.args[0]
        assert isinstance(error, UpstreamError)
        assert "stream reset" in str(error)

    async def test_send_content_uses_client_content(self):
        session = ScriptedSession([])
        handle = GenAILiveSession(MagicMock(), session, make_callbacks())

        await handle.send_content(Turn.text_only("hi"))

        content, turn_complete = session.sent[0]
        assert isinstance(content, types.Content)
        assert turn_complete is True

    async def test_close_is_idempotent_and_silences_callbacks(self):
        context = MagicMock()
        context.__aexit__ = AsyncMock(return_value=None)
        callbacks = make_callbacks()
        handle = GenAILiveSession(context, ScriptedSession([]), callbacks)

        await handle.close()
        await handle.close()

        context.__aexit__.assert_awaited_once()
        with pytest.raises(UpstreamError):
            await handle.send_content(Turn.text_only("late"))
        callbacks.on_close.assert_not_awaited()


class TestGenAILiveClient:
    """Tests for session creation through the SDK."""

    async def test_connect_opens_and_fires_on_open(self):
        with patch("gemini_relay.relay.upstream.genai.Client") as client_cls:
            live = client_cls.return_value.aio.live
            context = MagicMock()
            context.__aenter__ = AsyncMock(return_value=ScriptedSession([[]]))
            context.__aexit__ = AsyncMock(return_value=None)
            live.connect.return_value = context

            client = GenAILiveClient(api_key="key", api_version="v1beta")
            callbacks = make_callbacks()
            handle = await client.connect(
                "gemini-live-2.5-flash-preview",
                UpstreamConfig(system_instruction="be brief"),
                callbacks,
            )
            await handle.close()

        client_cls.assert_called_once_with(api_key="key", http_options={"api_version": "v1beta"})
        kwargs = live.connect.call_args.kwargs
        assert kwargs["model"] == "gemini-live-2.5-flash-preview"
        assert kwargs["config"].response_modalities == [types.Modality.TEXT]
        callbacks.on_open.assert_awaited_once()

    async def test_connect_failure_raises_upstream_error(self):
        with patch("gemini_relay.relay.upstream.genai.Client") as client_cls:
            context = MagicMock()
            context.__aenter__ = AsyncMock(side_effect=ConnectionError("refused"))
            client_cls.return_value.aio.live.connect.return_value = context

            client = GenAILiveClient(api_key="key")
            callbacks = make_callbacks()
            with pytest.raises(UpstreamError):
                await client.connect("m", UpstreamConfig(), callbacks)

        callbacks.on_open.assert_not_awaited()
