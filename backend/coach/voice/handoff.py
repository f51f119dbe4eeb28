from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from coach.store.kv import KeyValueBackend
from coach.system_metrics import increment_metric
from coach.voice.transcript import TranscriptEntry
from core.logger import log_event

logger = logging.getLogger("voice.handoff")

RECORD_KEY_PREFIX = "interview_transcript:"
LATEST_KEY = "interview_transcript_latest"


@dataclass(frozen=True)
class TranscriptRecord:
    session_id: str
    topic: str
    transcript: tuple
    timestamp: str

    @classmethod
    def build(cls, session_id: str, topic: str, entries: list[TranscriptEntry]) -> "TranscriptRecord":
        return cls(
            session_id=session_id,
            topic=topic,
            transcript=tuple(entry.to_dict() for entry in entries),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def to_artifact(self) -> dict:
        return {
            "topic": self.topic,
            "transcript": [dict(item) for item in self.transcript],
            "timestamp": self.timestamp,
        }


class HandoffStore:
    """Transcript records waiting for the scoring view. Each record is read once."""

    def __init__(self, backend: KeyValueBackend):
        self._backend = backend

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{RECORD_KEY_PREFIX}{session_id}"

    def put(self, record: TranscriptRecord) -> None:
        self._backend.set(self._key(record.session_id), record.to_artifact())
        self._backend.set(LATEST_KEY, record.session_id)

    def take(self, session_id: str) -> dict | None:
        sid = str(session_id or "").strip()
        if not sid:
            return None
        artifact = self._backend.delete(self._key(sid))
        if artifact is not None and self._backend.get(LATEST_KEY) == sid:
            self._backend.delete(LATEST_KEY)
        return artifact

    def take_latest(self) -> tuple[str, dict] | None:
        session_id = self._backend.get(LATEST_KEY)
        if not session_id:
            return None
        artifact = self.take(str(session_id))
        if artifact is None:
            return None
        return str(session_id), artifact

    def pending(self) -> list[str]:
        return [key[len(RECORD_KEY_PREFIX):] for key in self._backend.keys(RECORD_KEY_PREFIX)]


class TranscriptHandoff:
    """Persists the finished transcript, then tells the UI to move to scoring."""

    def __init__(
        self,
        store: HandoffStore,
        on_ready: Optional[Callable[[TranscriptRecord], None]] = None,
    ):
        self.store = store
        self._on_ready = on_ready

    def handoff(self, record: TranscriptRecord) -> None:
        self.store.put(record)
        increment_metric("voice_handoffs_written")
        log_event(
            "voice",
            "transcript_handoff_written",
            record.session_id,
            topic=record.topic,
            entries=len(record.transcript),
        )
        if self._on_ready is not None:
            self._on_ready(record)
