from pydantic import BaseModel


class ChatMessage(BaseModel):
    role: str
    content: str


class CoachProfile(BaseModel):
    resume: str | None = None
    jobDescription: str | None = None
    additionalNotes: str | None = None


class ChatRequest(BaseModel):
    messages: list[ChatMessage]
    profile: CoachProfile | None = None
    topic: str | None = None


class ChatResponse(BaseModel):
    response: str
    updatedStory: str | None = None


class TokenResponse(BaseModel):
    token: str


class TranscriptArtifact(BaseModel):
    session_id: str
    topic: str
    transcript: list[dict]
    timestamp: str


class ProfileUpdate(BaseModel):
    personality_type: str | None = None
    experience: str | None = None
    goals: list[str] | None = None
    resume: str | None = None
    job_description: str | None = None
    additional_notes: str | None = None


class StoryCreate(BaseModel):
    title: str
    category: str = ""
    bullet_points: list[str] = []
    score: float | None = None
    metadata: dict = {}


class StoryUpdate(BaseModel):
    title: str | None = None
    category: str | None = None
    bullet_points: list[str] | None = None
    score: float | None = None
    metadata: dict | None = None
