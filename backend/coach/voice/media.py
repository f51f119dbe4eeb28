from __future__ import annotations

import asyncio
import logging

from aiortc.contrib.media import MediaBlackhole, MediaPlayer, MediaRecorder

from coach.voice.errors import MediaAccessError
from core.config import MIC_DEVICE, MIC_FORMAT, PLAYBACK_DEVICE, PLAYBACK_FORMAT

logger = logging.getLogger("voice.media")


class LocalAudioCapture:
    """Microphone capture. Owns the player and its audio track."""

    def __init__(self, player: MediaPlayer):
        self._player = player

    @property
    def tracks(self) -> list:
        return [track for track in (self._player.audio,) if track is not None]


async def open_microphone(device: str = MIC_DEVICE, fmt: str = MIC_FORMAT) -> LocalAudioCapture:
    """
    Open the capture device (e.g. "default" with format "pulse", ":0" with
    "avfoundation", or a file path with no format for canned audio).
    Opening blocks inside ffmpeg, so it runs off the event loop.
    """
    try:
        player = await asyncio.to_thread(MediaPlayer, device, format=fmt or None)
    except Exception as exc:
        raise MediaAccessError(f"could not open audio device {device!r}: {exc}") from exc

    if player.audio is None:
        raise MediaAccessError(f"audio device {device!r} exposes no audio stream")
    return LocalAudioCapture(player)


class PlaybackSink:
    """
    Routes the remote interviewer track to an output. Without a configured
    device the audio is consumed and dropped so the track keeps flowing.
    """

    def __init__(self, device: str = PLAYBACK_DEVICE, fmt: str = PLAYBACK_FORMAT):
        self.device = device
        self.fmt = fmt
        self._recorder = None

    def _build_recorder(self):
        if not self.device:
            return MediaBlackhole()
        return MediaRecorder(self.device, format=self.fmt or None)

    async def attach(self, track) -> None:
        if self._recorder is not None:
            logger.info("playback sink already attached; ignoring extra track")
            return
        self._recorder = self._build_recorder()
        self._recorder.addTrack(track)
        await self._recorder.start()

    async def close(self) -> None:
        recorder, self._recorder = self._recorder, None
        if recorder is not None:
            await recorder.stop()
