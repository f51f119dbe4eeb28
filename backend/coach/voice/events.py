"""
Inbound control-channel events.

Every JSON frame the realtime upstream sends over the data channel is decoded
into exactly one of the event classes below. Kinds we do not act on become
UnknownEvent, so new upstream event types never break a session.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from coach.voice.errors import ReconstructionAnomaly


@dataclass(frozen=True)
class ControlEvent:
    type: str
    raw: dict = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class UserSpeechDelta(ControlEvent):
    delta: str = ""


@dataclass(frozen=True)
class UserSpeechFinalized(ControlEvent):
    transcript: str = ""


@dataclass(frozen=True)
class AssistantAudioStreaming(ControlEvent):
    pass


@dataclass(frozen=True)
class AssistantAudioStopped(ControlEvent):
    pass


@dataclass(frozen=True)
class AssistantSpeechDelta(ControlEvent):
    delta: str = ""


@dataclass(frozen=True)
class AssistantTurnFinalized(ControlEvent):
    transcript: str = ""


@dataclass(frozen=True)
class SessionUpdated(ControlEvent):
    pass


@dataclass(frozen=True)
class UpstreamError(ControlEvent):
    message: str = ""
    code: str = ""


@dataclass(frozen=True)
class UnknownEvent(ControlEvent):
    pass


USER_DELTA_TYPES = frozenset({
    "conversation.item.input_audio_transcription.delta",
})
USER_FINAL_TYPES = frozenset({
    "conversation.item.input_audio_transcription.completed",
})
ASSISTANT_AUDIO_TYPES = frozenset({
    "response.audio.delta",
    "response.output_audio.delta",
    "output_audio_buffer.started",
})
# playback of the buffered reply finished or was cut off
ASSISTANT_AUDIO_STOPPED_TYPES = frozenset({
    "output_audio_buffer.stopped",
    "output_audio_buffer.cleared",
})
ASSISTANT_DELTA_TYPES = frozenset({
    "response.audio_transcript.delta",
    "response.output_audio_transcript.delta",
    "response.text.delta",
    "response.output_text.delta",
})
ASSISTANT_FINAL_TYPES = frozenset({"response.done"})
SESSION_UPDATED_TYPES = frozenset({"session.updated"})
ERROR_TYPES = frozenset({"error", "session.error"})


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _response_transcript(payload: dict) -> str:
    """First transcript (or text) found in a response.done output list."""
    response = payload.get("response") if isinstance(payload.get("response"), dict) else {}
    for item in response.get("output") or []:
        if not isinstance(item, dict):
            continue
        for part in item.get("content") or []:
            if not isinstance(part, dict):
                continue
            text = _text(part.get("transcript")) or _text(part.get("text"))
            if text:
                return text
    return ""


def decode_event(payload: dict) -> ControlEvent:
    event_type = _text(payload.get("type"))

    if event_type in USER_DELTA_TYPES:
        return UserSpeechDelta(type=event_type, raw=payload, delta=_text(payload.get("delta")))
    if event_type in USER_FINAL_TYPES:
        return UserSpeechFinalized(type=event_type, raw=payload, transcript=_text(payload.get("transcript")))
    if event_type in ASSISTANT_AUDIO_TYPES:
        return AssistantAudioStreaming(type=event_type, raw=payload)
    if event_type in ASSISTANT_AUDIO_STOPPED_TYPES:
        return AssistantAudioStopped(type=event_type, raw=payload)
    if event_type in ASSISTANT_DELTA_TYPES:
        return AssistantSpeechDelta(type=event_type, raw=payload, delta=_text(payload.get("delta")))
    if event_type in ASSISTANT_FINAL_TYPES:
        return AssistantTurnFinalized(type=event_type, raw=payload, transcript=_response_transcript(payload))
    if event_type in SESSION_UPDATED_TYPES:
        return SessionUpdated(type=event_type, raw=payload)
    if event_type in ERROR_TYPES:
        error = payload.get("error") if isinstance(payload.get("error"), dict) else {}
        return UpstreamError(
            type=event_type,
            raw=payload,
            message=_text(error.get("message")) or "Unknown error",
            code=_text(error.get("code")),
        )
    return UnknownEvent(type=event_type, raw=payload)


def parse_event(frame: str | bytes) -> ControlEvent:
    if isinstance(frame, bytes):
        try:
            frame = frame.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ReconstructionAnomaly(f"non-utf8 frame: {exc}") from exc
    try:
        payload = json.loads(frame)
    except (TypeError, ValueError) as exc:
        raise ReconstructionAnomaly(f"invalid json frame: {exc}") from exc
    if not isinstance(payload, dict):
        raise ReconstructionAnomaly(f"frame is not an object: {type(payload).__name__}")
    return decode_event(payload)


def encode_message(message: dict) -> str:
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))
