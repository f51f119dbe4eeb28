from __future__ import annotations

import logging

import httpx

from coach.voice.credentials import Credential
from coach.voice.errors import HandshakeError
from core.config import HTTP_TIMEOUT_SEC, REALTIME_BASE_URL, REALTIME_MODEL

logger = logging.getLogger("voice.signaling")

SDP_CONTENT_TYPE = "application/sdp"


class SignalingClient:
    """Trades a local SDP offer for the upstream's SDP answer."""

    def __init__(
        self,
        base_url: str = REALTIME_BASE_URL,
        model: str = REALTIME_MODEL,
        timeout_sec: float = HTTP_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_sec = timeout_sec
        self._transport = transport

    async def exchange(self, credential: Credential, offer_sdp: str) -> str:
        if not str(offer_sdp or "").strip():
            raise HandshakeError("local offer is empty")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                response = await client.post(
                    self.base_url,
                    params={"model": self.model},
                    content=offer_sdp.encode("utf-8"),
                    headers={
                        "Authorization": credential.authorization_header(),
                        "Content-Type": SDP_CONTENT_TYPE,
                    },
                )
        except httpx.HTTPError as exc:
            raise HandshakeError(f"offer exchange failed: {exc}") from exc

        if not response.is_success:
            logger.warning("offer rejected | status=%s", response.status_code)
            raise HandshakeError(
                f"Failed to get SDP answer: {response.status_code} {response.reason_phrase} - {response.text}"
            )

        answer_sdp = response.text
        if not answer_sdp.strip():
            raise HandshakeError("upstream returned an empty SDP answer")
        return answer_sdp
