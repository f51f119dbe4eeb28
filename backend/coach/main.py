from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
from dataclasses import asdict
from pathlib import Path

from coach.schemas import (
    ChatRequest,
    ChatResponse,
    ProfileUpdate,
    StoryCreate,
    StoryUpdate,
    TokenResponse,
    TranscriptArtifact,
)
from coach.services.chat_service import ChatServiceError, get_coach_reply
from coach.services.realtime_service import TokenMintError, mint_client_secret
from coach.store.kv import JsonFileBackend
from coach.store.profile import StoryStore, UserProfileStore
from coach.system_metrics import get_metrics_snapshot
from coach.voice.handoff import HandoffStore
from core.config import DATA_DIR, QA_MODE

app = FastAPI(title="Behavioral Interview Coach")
logger = logging.getLogger("coach.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

# the voice client writes here from its own process
handoff_store = HandoffStore(JsonFileBackend(Path(DATA_DIR) / "handoff.json", shared=True))
_profile_backend = JsonFileBackend(Path(DATA_DIR) / "profile.json")
profile_store = UserProfileStore(_profile_backend)
story_store = StoryStore(_profile_backend)


@app.get("/health")
async def health():
    return {"status": "ok", "qa_mode": QA_MODE}


@app.get("/api/openai/token", response_model=TokenResponse)
async def get_realtime_token():
    try:
        token = await mint_client_secret()
    except TokenMintError as exc:
        logger.error("[GET /api/openai/token] %s", exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)
    return {"token": token}


@app.post("/api/chat", response_model=ChatResponse)
async def chat(req: ChatRequest):
    messages = [message.model_dump() for message in req.messages]
    if not messages:
        raise HTTPException(400, "Invalid messages format")

    if req.profile is not None:
        profile = req.profile.model_dump()
    else:
        profile = profile_store.profile.as_prompt_profile()
    try:
        return await get_coach_reply(messages, profile=profile, topic=req.topic)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    except ChatServiceError:
        return JSONResponse({"error": "Failed to generate response"}, status_code=500)


@app.get("/api/transcripts/latest", response_model=TranscriptArtifact)
async def take_latest_transcript():
    item = handoff_store.take_latest()
    if item is None:
        raise HTTPException(404, "No interview transcript found")
    session_id, artifact = item
    return {"session_id": session_id, **artifact}


@app.get("/api/transcripts/{session_id}", response_model=TranscriptArtifact)
async def take_transcript(session_id: str):
    artifact = handoff_store.take(session_id)
    if artifact is None:
        raise HTTPException(404, "No interview transcript found")
    return {"session_id": session_id, **artifact}


@app.get("/api/profile")
async def get_profile():
    return asdict(profile_store.profile)


@app.put("/api/profile")
async def update_profile(update: ProfileUpdate):
    setters = {
        "personality_type": profile_store.set_personality_type,
        "experience": profile_store.set_experience,
        "goals": profile_store.set_goals,
        "resume": profile_store.set_resume,
        "job_description": profile_store.set_job_description,
        "additional_notes": profile_store.set_additional_notes,
    }
    for field, value in update.model_dump(exclude_unset=True).items():
        setters[field](value)
    return asdict(profile_store.profile)


@app.get("/api/stories")
async def list_stories():
    return {"items": story_store.list()}


@app.post("/api/stories")
async def add_story(story: StoryCreate):
    return story_store.add(story.model_dump())


@app.get("/api/stories/{story_id}")
async def get_story(story_id: str):
    story = story_store.get(story_id)
    if story is None:
        raise HTTPException(404, "Story not found")
    return story


@app.put("/api/stories/{story_id}")
async def update_story(story_id: str, update: StoryUpdate):
    if not story_store.update(story_id, update.model_dump(exclude_unset=True)):
        raise HTTPException(404, "Story not found")
    return story_store.get(story_id)


@app.delete("/api/stories/{story_id}")
async def delete_story(story_id: str):
    if not story_store.remove(story_id):
        raise HTTPException(404, "Story not found")
    return {"status": "deleted"}


@app.get("/api/metrics")
async def metrics():
    return get_metrics_snapshot(extra={"pending_transcripts": len(handoff_store.pending())})
