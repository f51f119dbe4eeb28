from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

from coach.store.kv import KeyValueBackend

USER_STORAGE_KEY = "user-storage"
STORY_STORAGE_KEY = "story-storage"


@dataclass
class UserProfile:
    personality_type: str | None = None
    experience: str | None = None
    goals: list[str] = field(default_factory=list)
    resume: str = ""
    job_description: str = ""
    additional_notes: str = ""

    def as_prompt_profile(self) -> dict:
        return {
            "resume": self.resume,
            "jobDescription": self.job_description,
            "additionalNotes": self.additional_notes,
        }


class UserProfileStore:
    """Candidate profile state. Loaded from the backend on init, flushed on every write."""

    def __init__(self, backend: KeyValueBackend):
        self._backend = backend
        self.profile = self._load()

    def _load(self) -> UserProfile:
        raw = self._backend.get(USER_STORAGE_KEY) or {}
        if not isinstance(raw, dict):
            return UserProfile()
        return UserProfile(
            personality_type=raw.get("personality_type"),
            experience=raw.get("experience"),
            goals=[str(goal) for goal in raw.get("goals") or []],
            resume=str(raw.get("resume") or ""),
            job_description=str(raw.get("job_description") or ""),
            additional_notes=str(raw.get("additional_notes") or ""),
        )

    def _flush(self) -> None:
        self._backend.set(USER_STORAGE_KEY, asdict(self.profile))

    def set_personality_type(self, value: str) -> None:
        self.profile.personality_type = value
        self._flush()

    def set_experience(self, level: str) -> None:
        self.profile.experience = level
        self._flush()

    def set_goals(self, goals: list[str]) -> None:
        self.profile.goals = list(goals or [])
        self._flush()

    def set_resume(self, text: str) -> None:
        self.profile.resume = str(text or "")
        self._flush()

    def set_job_description(self, text: str) -> None:
        self.profile.job_description = str(text or "")
        self._flush()

    def set_additional_notes(self, text: str) -> None:
        self.profile.additional_notes = str(text or "")
        self._flush()


class StoryStore:
    def __init__(self, backend: KeyValueBackend):
        self._backend = backend
        raw = backend.get(STORY_STORAGE_KEY) or []
        self._stories: list[dict[str, Any]] = [dict(item) for item in raw if isinstance(item, dict)]

    def _flush(self) -> None:
        self._backend.set(STORY_STORAGE_KEY, self._stories)

    def list(self) -> list[dict[str, Any]]:
        return [dict(story) for story in self._stories]

    def get(self, story_id: str) -> dict[str, Any] | None:
        for story in self._stories:
            if story.get("id") == story_id:
                return dict(story)
        return None

    def add(self, story: dict[str, Any]) -> dict[str, Any]:
        item = dict(story or {})
        item.setdefault("id", str(uuid.uuid4()))
        self._stories.append(item)
        self._flush()
        return dict(item)

    def update(self, story_id: str, data: dict[str, Any]) -> bool:
        for story in self._stories:
            if story.get("id") == story_id:
                story.update({k: v for k, v in (data or {}).items() if k != "id"})
                self._flush()
                return True
        return False

    def remove(self, story_id: str) -> bool:
        remaining = [story for story in self._stories if story.get("id") != story_id]
        if len(remaining) == len(self._stories):
            return False
        self._stories = remaining
        self._flush()
        return True
