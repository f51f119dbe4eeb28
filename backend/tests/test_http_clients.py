import httpx
import pytest

from coach.services.realtime_service import TokenMintError, mint_client_secret
from coach.system_metrics import get_metrics_snapshot
from coach.voice.credentials import Credential, CredentialFetcher, fetch_ephemeral_credential
from coach.voice.errors import CredentialError, HandshakeError
from coach.voice.signaling import SignalingClient


def _transport(handler):
    return httpx.MockTransport(handler)


# -------------------------
# credential endpoint
# -------------------------

@pytest.mark.asyncio
async def test_credential_fetch_returns_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"token": "ek_123"})

    credential = await CredentialFetcher("http://backend/api/openai/token", transport=_transport(handler)).fetch()

    assert credential == Credential(token="ek_123")
    assert credential.authorization_header() == "Bearer ek_123"
    assert seen[0].method == "GET"
    assert str(seen[0].url) == "http://backend/api/openai/token"


@pytest.mark.asyncio
async def test_credential_fetch_surfaces_server_error():
    def handler(request):
        return httpx.Response(500, json={"error": "Server configuration error: Missing OpenAI API key."})

    with pytest.raises(CredentialError) as info:
        await fetch_ephemeral_credential("http://backend/token", transport=_transport(handler))
    assert "500" in str(info.value)
    assert "Missing OpenAI API key" in str(info.value)


@pytest.mark.asyncio
async def test_credential_fetch_rejects_missing_token():
    def handler(request):
        return httpx.Response(200, json={"client_secret": {"value": "wrong-shape"}})

    with pytest.raises(CredentialError, match="Invalid token response"):
        await CredentialFetcher("http://backend/token", transport=_transport(handler))()


@pytest.mark.asyncio
async def test_credential_fetch_unreachable_endpoint():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CredentialError, match="unreachable"):
        await CredentialFetcher("http://backend/token", transport=_transport(handler)).fetch()


# -------------------------
# offer / answer exchange
# -------------------------

@pytest.mark.asyncio
async def test_signaling_posts_offer_and_returns_answer():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(201, text="v=0\r\nanswer\r\n")

    client = SignalingClient("https://api.example/v1/realtime", model="rt-model", transport=_transport(handler))
    answer = await client.exchange(Credential("ek_1"), "v=0\r\noffer\r\n")

    assert answer == "v=0\r\nanswer\r\n"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.params["model"] == "rt-model"
    assert request.headers["authorization"] == "Bearer ek_1"
    assert request.headers["content-type"] == "application/sdp"
    assert request.content == b"v=0\r\noffer\r\n"


@pytest.mark.asyncio
async def test_signaling_rejection_includes_status_and_body():
    def handler(request):
        return httpx.Response(401, text="invalid ephemeral key")

    client = SignalingClient("https://api.example/v1/realtime", transport=_transport(handler))
    with pytest.raises(HandshakeError) as info:
        await client.exchange(Credential("ek_1"), "v=0")
    assert str(info.value) == "Failed to get SDP answer: 401 Unauthorized - invalid ephemeral key"


@pytest.mark.asyncio
async def test_signaling_refuses_empty_offer_and_empty_answer():
    def handler(request):
        return httpx.Response(200, text="   ")

    client = SignalingClient("https://api.example/v1/realtime", transport=_transport(handler))
    with pytest.raises(HandshakeError, match="offer is empty"):
        await client.exchange(Credential("ek_1"), "")
    with pytest.raises(HandshakeError, match="empty SDP answer"):
        await client.exchange(Credential("ek_1"), "v=0")


# -------------------------
# server-side token minting
# -------------------------

@pytest.mark.asyncio
async def test_mint_client_secret_returns_only_the_secret_value():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "sess_1", "client_secret": {"value": "ek_live", "expires_at": 1}})

    value = await mint_client_secret(api_key="sk-test", transport=_transport(handler))

    assert value == "ek_live"
    assert seen[0].headers["authorization"] == "Bearer sk-test"
    assert get_metrics_snapshot()["tokens_minted"] == 1


@pytest.mark.asyncio
async def test_mint_client_secret_without_key():
    with pytest.raises(TokenMintError) as info:
        await mint_client_secret(api_key="  ")
    assert info.value.status_code == 500
    assert info.value.message == "Server configuration error: Missing OpenAI API key."


@pytest.mark.asyncio
async def test_mint_client_secret_propagates_upstream_status():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "slow down"}})

    with pytest.raises(TokenMintError) as info:
        await mint_client_secret(api_key="sk-test", transport=_transport(handler))
    assert info.value.status_code == 429
    assert info.value.message.startswith("Failed to create realtime session: Too Many Requests")
    assert get_metrics_snapshot()["token_mint_failures"] == 1


@pytest.mark.asyncio
async def test_mint_client_secret_invalid_structure():
    def handler(request):
        return httpx.Response(200, json={"client_secret": None})

    with pytest.raises(TokenMintError, match="Invalid response structure"):
        await mint_client_secret(api_key="sk-test", transport=_transport(handler))
