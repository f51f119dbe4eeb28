import asyncio
import json
import logging

from openai import AsyncOpenAI

from coach.prompts import coach_system_prompt
from coach.system_metrics import increment_metric
from core.config import MODEL_NAME, OPENAI_API_KEY

logger = logging.getLogger("coach.services.chat_service")

client = AsyncOpenAI(api_key=OPENAI_API_KEY or "missing-key")

ALLOWED_ROLES = {"user", "assistant"}


class ChatServiceError(Exception):
    pass


def _normalize_messages(messages: list[dict]) -> list[dict]:
    normalized = []
    for item in messages or []:
        role = str((item or {}).get("role") or "").strip().lower()
        content = str((item or {}).get("content") or "")
        if role not in ALLOWED_ROLES or not content.strip():
            continue
        normalized.append({"role": role, "content": content})
    return normalized


def parse_coach_reply(raw: str) -> dict:
    """{"response", "updatedStory"} from JSON output, or the raw text as response."""
    text = str(raw or "").strip()
    try:
        parsed = json.loads(text)
    except ValueError:
        logger.warning("coach reply was not JSON; returning raw text")
        return {"response": text}
    if not isinstance(parsed, dict):
        return {"response": text}
    return {
        "response": str(parsed.get("feedback") or ""),
        "updatedStory": str(parsed.get("updatedStory") or ""),
    }


async def get_coach_reply(
    messages: list[dict],
    profile: dict | None = None,
    topic: str | None = None,
    timeout_sec: float = 30.0,
) -> dict:
    history = _normalize_messages(messages)
    if not history:
        raise ValueError("Invalid messages format")

    increment_metric("chat_requests")
    try:
        response = await asyncio.wait_for(
            client.chat.completions.create(
                model=MODEL_NAME,
                messages=[{"role": "system", "content": coach_system_prompt(profile, topic)}, *history],
                max_tokens=800,
                temperature=0.7,
                response_format={"type": "json_object"},
            ),
            timeout=timeout_sec,
        )
    except asyncio.TimeoutError as exc:
        increment_metric("chat_failures")
        logger.warning("coach reply timeout | topic=%s", topic)
        raise ChatServiceError("chat completion timed out") from exc
    except Exception as exc:
        increment_metric("chat_failures")
        logger.warning("coach reply failure | topic=%s err=%s", topic, exc)
        raise ChatServiceError(str(exc)) from exc

    content = response.choices[0].message.content
    return parse_coach_reply(str(content or ""))
