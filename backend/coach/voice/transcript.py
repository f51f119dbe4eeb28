from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from coach.voice.events import (
    AssistantAudioStreaming,
    AssistantAudioStopped,
    AssistantSpeechDelta,
    AssistantTurnFinalized,
    ControlEvent,
    UserSpeechDelta,
    UserSpeechFinalized,
)

logger = logging.getLogger("transcript_reconstructor")


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Speaking(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    NONE = "none"


@dataclass
class TranscriptEntry:
    speaker: Speaker
    text: str = ""

    def to_dict(self) -> dict:
        return {"from": self.speaker.value, "text": self.text}


class TranscriptReconstructor:
    """
    Rebuilds the live two-party transcript from ordered control events.

    Deltas are appended to the last entry while the speaker stays the same.
    Finalized events carry the authoritative text for the turn and overwrite
    whatever the deltas accumulated.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self.entries: list[TranscriptEntry] = []
        self.speaking = Speaking.NONE
        self._on_change = on_change

    # -------------------------
    # INPUT
    # -------------------------

    def seed_assistant(self, text: str) -> None:
        """Local opening question, shown before any upstream event."""
        self.entries.append(TranscriptEntry(Speaker.ASSISTANT, text))
        self._changed()

    def apply(self, event: ControlEvent) -> bool:
        """Apply one event. Returns True when the transcript or speaker changed."""
        if isinstance(event, UserSpeechDelta):
            self._append_delta(Speaker.USER, event.delta, allow_empty=True)
            self.speaking = Speaking.USER
        elif isinstance(event, UserSpeechFinalized):
            if not event.transcript.strip():
                return False
            self._finalize_user(event.transcript)
        elif isinstance(event, AssistantAudioStreaming):
            if self.speaking == Speaking.ASSISTANT:
                return False
            self.speaking = Speaking.ASSISTANT
        elif isinstance(event, AssistantAudioStopped):
            # audio keeps playing after response.done until the buffer drains
            if self.speaking != Speaking.ASSISTANT:
                return False
            self.speaking = Speaking.NONE
        elif isinstance(event, AssistantSpeechDelta):
            self._append_delta(Speaker.ASSISTANT, event.delta, allow_empty=False)
            self.speaking = Speaking.ASSISTANT
        elif isinstance(event, AssistantTurnFinalized):
            if event.transcript:
                self._finalize_assistant(event.transcript)
            self.speaking = Speaking.NONE
        else:
            logger.debug("event ignored by reconstructor | type=%s", event.type)
            return False

        self._changed()
        return True

    def _last(self) -> Optional[TranscriptEntry]:
        return self.entries[-1] if self.entries else None

    def _append_delta(self, speaker: Speaker, delta: str, allow_empty: bool) -> None:
        last = self._last()
        if last is not None and last.speaker == speaker:
            last.text += delta
            return
        if not allow_empty and not delta.strip():
            return
        self.entries.append(TranscriptEntry(speaker, delta))

    def _finalize_user(self, transcript: str) -> None:
        last = self._last()
        if last is not None and last.speaker == Speaker.USER:
            last.text = transcript
        else:
            self.entries.append(TranscriptEntry(Speaker.USER, transcript))

    def _finalize_assistant(self, transcript: str) -> None:
        last = self._last()
        if last is not None and last.speaker == Speaker.ASSISTANT:
            last.text = transcript
        elif transcript.strip() and (last is None or last.text != transcript):
            self.entries.append(TranscriptEntry(Speaker.ASSISTANT, transcript))

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception as exc:
            logger.warning("transcript change listener failed | err=%s", exc)

    # -------------------------
    # OUTPUT
    # -------------------------

    def is_empty(self) -> bool:
        return not self.entries

    def reset(self) -> None:
        self.entries = []
        self.speaking = Speaking.NONE

    def snapshot(self) -> list[dict]:
        return [entry.to_dict() for entry in self.entries]
