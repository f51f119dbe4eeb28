from __future__ import annotations

from dataclasses import dataclass

from core import config


@dataclass(frozen=True)
class VoiceSettings:
    model: str = config.REALTIME_MODEL
    voice: str = config.REALTIME_VOICE
    transcription_model: str = config.TRANSCRIPTION_MODEL
    vad_threshold: float = config.VAD_THRESHOLD
    vad_prefix_padding_ms: int = config.VAD_PREFIX_PADDING_MS
    vad_silence_ms: int = config.VAD_SILENCE_MS
    vad_create_response: bool = config.VAD_CREATE_RESPONSE
    channel_open_timeout_sec: float = config.CHANNEL_OPEN_TIMEOUT_SEC
    config_ack_timeout_sec: float = config.CONFIG_ACK_TIMEOUT_SEC
    control_channel_label: str = "oai-events"
