import asyncio
import json

import pytest

from coach.voice.configurator import SessionConfigurator
from coach.voice.settings import VoiceSettings


class _Channel:
    def __init__(self, ready_state="open"):
        self.readyState = ready_state
        self.sent = []

    def send(self, data):
        self.sent.append(json.loads(data))


def test_session_config_uses_server_vad_and_transcription():
    settings = VoiceSettings(voice="ash", vad_threshold=0.6, vad_prefix_padding_ms=250, vad_silence_ms=900)
    config = SessionConfigurator(settings).build_session_config()

    session = config["session"]
    assert config["type"] == "session.update"
    assert session["voice"] == "ash"
    assert session["input_audio_format"] == "pcm16"
    assert session["input_audio_transcription"] == {"model": settings.transcription_model}
    assert session["turn_detection"] == {
        "type": "server_vad",
        "threshold": 0.6,
        "prefix_padding_ms": 250,
        "silence_duration_ms": 900,
        "create_response": True,
    }
    assert "instructions" not in session


def test_instructions_name_the_topic():
    message = SessionConfigurator().build_instructions("teamwork")
    assert message["type"] == "session.update"
    assert "Tell me about a time you handled teamwork." in message["session"]["instructions"]


@pytest.mark.asyncio
async def test_configure_waits_for_acknowledgement():
    channel = _Channel()
    ack = asyncio.Event()
    task = asyncio.create_task(
        SessionConfigurator(VoiceSettings(config_ack_timeout_sec=5.0)).configure(channel, "conflict", ack)
    )

    await asyncio.sleep(0.01)
    assert len(channel.sent) == 1

    ack.set()
    await task
    assert len(channel.sent) == 2
    assert "conflict" in channel.sent[1]["session"]["instructions"]


@pytest.mark.asyncio
async def test_configure_falls_back_after_timeout():
    channel = _Channel()
    await SessionConfigurator(VoiceSettings(config_ack_timeout_sec=0.01)).configure(channel, "failure", asyncio.Event())
    assert len(channel.sent) == 2


@pytest.mark.asyncio
async def test_configure_skips_instructions_when_channel_closed_meanwhile():
    channel = _Channel()

    async def _close_soon():
        await asyncio.sleep(0)
        channel.readyState = "closed"

    asyncio.create_task(_close_soon())
    await SessionConfigurator(VoiceSettings(config_ack_timeout_sec=0.02)).configure(channel, "x", asyncio.Event())

    assert len(channel.sent) == 1


@pytest.mark.asyncio
async def test_configure_send_failure_is_logged_not_raised():
    class _Broken:
        readyState = "open"

        def send(self, data):
            raise RuntimeError("channel gone")

    await SessionConfigurator().configure(_Broken(), "x", asyncio.Event())
