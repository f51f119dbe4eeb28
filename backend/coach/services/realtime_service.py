import logging

import httpx

from coach.system_metrics import increment_metric
from core.config import (
    HTTP_TIMEOUT_SEC,
    OPENAI_API_KEY,
    REALTIME_MODEL,
    REALTIME_SESSIONS_URL,
    REALTIME_VOICE,
)

logger = logging.getLogger("coach.services.realtime_service")


class TokenMintError(Exception):
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


async def mint_client_secret(
    api_key: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """
    Server-to-server call that trades the long-lived API key for a short-lived
    realtime client secret. Only the secret value leaves this process.
    """
    key = str(api_key if api_key is not None else OPENAI_API_KEY).strip()
    if not key:
        logger.error("OPENAI_API_KEY environment variable is not set.")
        increment_metric("token_mint_failures")
        raise TokenMintError("Server configuration error: Missing OpenAI API key.", 500)

    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SEC, transport=transport) as client:
            response = await client.post(
                REALTIME_SESSIONS_URL,
                headers={
                    "Authorization": f"Bearer {key}",
                    "Content-Type": "application/json",
                },
                json={"model": REALTIME_MODEL, "voice": REALTIME_VOICE},
            )
    except httpx.HTTPError as exc:
        logger.warning("realtime session request failed | err=%s", exc)
        increment_metric("token_mint_failures")
        raise TokenMintError(str(exc) or "Internal Server Error", 500) from exc

    if not response.is_success:
        try:
            detail = response.json()
        except ValueError:
            detail = {}
        logger.warning("realtime session rejected | status=%s detail=%s", response.status_code, detail)
        increment_metric("token_mint_failures")
        raise TokenMintError(
            f"Failed to create realtime session: {response.reason_phrase} - {detail}",
            response.status_code,
        )

    try:
        data = response.json()
    except ValueError:
        data = {}
    client_secret = data.get("client_secret") if isinstance(data, dict) else None
    value = client_secret.get("value") if isinstance(client_secret, dict) else None
    if not isinstance(value, str) or not value:
        logger.error("Invalid response structure from OpenAI realtime sessions endpoint")
        increment_metric("token_mint_failures")
        raise TokenMintError("Invalid response structure from OpenAI.", 500)

    increment_metric("tokens_minted")
    return value
