from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from coach.voice.errors import CredentialError
from core.config import CREDENTIAL_ENDPOINT_URL, HTTP_TIMEOUT_SEC

logger = logging.getLogger("voice.credentials")


@dataclass(frozen=True)
class Credential:
    token: str

    def authorization_header(self) -> str:
        return f"Bearer {self.token}"


class CredentialFetcher:
    """Asks the backend intermediary for a short-lived realtime token."""

    def __init__(
        self,
        endpoint_url: str = CREDENTIAL_ENDPOINT_URL,
        timeout_sec: float = HTTP_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint_url = endpoint_url
        self.timeout_sec = timeout_sec
        self._transport = transport

    async def __call__(self) -> Credential:
        return await self.fetch()

    async def fetch(self) -> Credential:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                response = await client.get(self.endpoint_url)
        except httpx.HTTPError as exc:
            raise CredentialError(f"credential endpoint unreachable: {exc}") from exc

        if response.status_code != 200:
            try:
                detail = str((response.json() or {}).get("error") or "")
            except ValueError:
                detail = response.text
            logger.warning("credential fetch rejected | status=%s", response.status_code)
            raise CredentialError(f"Failed to fetch token: {response.status_code} {detail}".strip())

        try:
            data = response.json()
        except ValueError as exc:
            raise CredentialError("Invalid token response structure from server.") from exc

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise CredentialError("Invalid token response structure from server.")
        return Credential(token=token)


async def fetch_ephemeral_credential(
    endpoint_url: str = CREDENTIAL_ENDPOINT_URL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Credential:
    return await CredentialFetcher(endpoint_url=endpoint_url, transport=transport).fetch()
