from __future__ import annotations

import asyncio
import logging

from coach.prompts import interviewer_instructions
from coach.voice.events import encode_message
from coach.voice.settings import VoiceSettings
from core.logger import log_event

logger = logging.getLogger("voice.configurator")


class SessionConfigurator:
    """
    Sends the session configuration, waits for the upstream to acknowledge it
    (session.updated) or for the fallback delay, then sends the interviewer
    instructions. Nothing here waits on the instructions themselves.
    """

    def __init__(self, settings: VoiceSettings | None = None):
        self.settings = settings or VoiceSettings()

    def build_session_config(self) -> dict:
        s = self.settings
        return {
            "type": "session.update",
            "session": {
                "modalities": ["audio", "text"],
                "voice": s.voice,
                "input_audio_format": "pcm16",
                "output_audio_format": "pcm16",
                "input_audio_transcription": {"model": s.transcription_model},
                "turn_detection": {
                    "type": "server_vad",
                    "threshold": s.vad_threshold,
                    "prefix_padding_ms": s.vad_prefix_padding_ms,
                    "silence_duration_ms": s.vad_silence_ms,
                    "create_response": s.vad_create_response,
                },
            },
        }

    def build_instructions(self, topic: str) -> dict:
        return {
            "type": "session.update",
            "session": {"instructions": interviewer_instructions(topic)},
        }

    async def configure(self, channel, topic: str, acknowledged: asyncio.Event, session_id: str = "") -> None:
        try:
            channel.send(encode_message(self.build_session_config()))
            log_event("voice", "session_config_sent", session_id)

            try:
                await asyncio.wait_for(acknowledged.wait(), timeout=self.settings.config_ack_timeout_sec)
                log_event("voice", "session_config_acknowledged", session_id)
            except asyncio.TimeoutError:
                log_event(
                    "voice",
                    "session_config_ack_timeout",
                    session_id,
                    level=logging.WARNING,
                    waited_sec=self.settings.config_ack_timeout_sec,
                )

            if getattr(channel, "readyState", "open") != "open":
                log_event("voice", "instructions_skipped_channel_closed", session_id)
                return
            channel.send(encode_message(self.build_instructions(topic)))
            log_event("voice", "instructions_sent", session_id, topic=topic)
        except Exception as exc:
            logger.warning("session configuration failed | session_id=%s err=%s", session_id, exc)
