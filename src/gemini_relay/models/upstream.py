"""
Upstream Message Variants
=========================

Typed views of the streamed messages received from the Live API.

Each raw message (a camelCase dict) is classified into zero or more
variants. A single message may carry several at once, e.g. model-turn
text and a turn-complete flag.

Handled shapes:
    {"text": "..."}                                        -> DirectText
    {"serverContent": {"modelTurn": {"parts": [...]}}}     -> ModelTurnParts
    {"serverContent": {"turnComplete": true}}              -> TurnCompleteSignal
    {"serverContent": {"inputTranscription": {"text"}}}    -> InputTranscription
    {"serverContent": {"outputTranscription": {"text"}}}   -> OutputTranscription

snake_case keys (as produced by the Python SDK without aliases) are
accepted as well.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union


@dataclass(frozen=True)
class DirectText:
    """Top-level text field carried by the message."""

    text: str


@dataclass(frozen=True)
class ModelTurnParts:
    """Text parts of serverContent.modelTurn, in order."""

    texts: List[str] = field(default_factory=list)

    def joined(self) -> str:
        """Non-empty parts joined with single spaces."""
        return " ".join(text for text in self.texts if text)


@dataclass(frozen=True)
class TurnCompleteSignal:
    """serverContent.turnComplete was set."""
    pass


@dataclass(frozen=True)
class InputTranscription:
    """Transcription of user audio input."""

    text: str


@dataclass(frozen=True)
class OutputTranscription:
    """Transcription of model audio output."""

    text: str


UpstreamVariant = Union[
    DirectText,
    ModelTurnParts,
    TurnCompleteSignal,
    InputTranscription,
    OutputTranscription,
]


def _field(data: Mapping[str, Any], camel: str, snake: str) -> Any:
    """Read a key in either camelCase or snake_case form."""
    if camel in data:
        return data[camel]
    return data.get(snake)


def _transcription_text(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        text = value.get("text")
        if isinstance(text, str) and text:
            return text
    return None


def parse_upstream_message(raw: Mapping[str, Any]) -> List[UpstreamVariant]:
    """
    Classify a raw upstream message into typed variants.

    Args:
        raw: Message as a dict (camelCase or snake_case keys)

    Returns:
        Variants found in the message, in a stable order:
        DirectText, ModelTurnParts, transcriptions, TurnCompleteSignal.
    """
    variants: List[UpstreamVariant] = []
    if not isinstance(raw, Mapping):
        return variants

    text = raw.get("text")
    if isinstance(text, str) and text:
        variants.append(DirectText(text=text))

    server_content = _field(raw, "serverContent", "server_content")
    if not isinstance(server_content, Mapping):
        return variants

    model_turn = _field(server_content, "modelTurn", "model_turn")
    if isinstance(model_turn, Mapping):
        parts = model_turn.get("parts") or []
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, Mapping) and isinstance(part.get("text"), str) and part["text"]
        ]
        if texts:
            variants.append(ModelTurnParts(texts=texts))

    input_text = _transcription_text(
        _field(server_content, "inputTranscription", "input_transcription")
    )
    if input_text:
        variants.append(InputTranscription(text=input_text))

    output_text = _transcription_text(
        _field(server_content, "outputTranscription", "output_transcription")
    )
    if output_text:
        variants.append(OutputTranscription(text=output_text))

    if _field(server_content, "turnComplete", "turn_complete"):
        variants.append(TurnCompleteSignal())

    return variants
