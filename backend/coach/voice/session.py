"""
Realtime voice interview session.

One VoiceInterviewSession drives one attempt at a time through
idle -> connecting -> open -> closing/failed -> closed:

  credential fetch -> microphone -> peer connection + control channel
  -> offer/answer over HTTPS -> wait for channel open -> configure

Every exit path (user end, channel close, ICE loss, upstream error, handshake
failure, unmount) funnels into one teardown task, so the transcript is handed
off once and each resource is released once no matter how many triggers fire.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Optional

from aiortc import RTCPeerConnection, RTCSessionDescription

from coach.prompts import DEFAULT_TOPIC, opening_question
from coach.store.kv import JsonFileBackend
from coach.system_metrics import (
    decrement_metric,
    increment_metric,
    observe_handshake_ms,
    record_voice_failure,
)
from coach.voice.configurator import SessionConfigurator
from coach.voice.credentials import Credential, CredentialFetcher
from coach.voice.errors import (
    CredentialError,
    HandshakeError,
    MediaAccessError,
    ReconstructionAnomaly,
    SessionAlreadyActiveError,
    TransportFailure,
    UpstreamSessionError,
    VoiceSessionError,
)
from coach.voice.events import SessionUpdated, UnknownEvent, UpstreamError, parse_event
from coach.voice.handoff import HandoffStore, TranscriptHandoff, TranscriptRecord
from coach.voice.media import LocalAudioCapture, PlaybackSink, open_microphone
from coach.voice.settings import VoiceSettings
from coach.voice.signaling import SignalingClient
from coach.voice.transcript import Speaking, TranscriptReconstructor
from core.config import DATA_DIR
from core.logger import log_event
from core.state import STARTABLE_STATES, VoiceSessionState, can_transition

logger = logging.getLogger("voice.session")

ICE_TERMINAL_STATES = frozenset({"failed", "disconnected", "closed"})

StateListener = Callable[[VoiceSessionState, Optional[str]], None]
TranscriptListener = Callable[[list[dict], Speaking], None]


def default_handoff(data_dir: str = DATA_DIR, on_ready=None) -> TranscriptHandoff:
    # the API process consumes records from the same file
    backend = JsonFileBackend(Path(data_dir) / "handoff.json", shared=True)
    return TranscriptHandoff(HandoffStore(backend), on_ready=on_ready)


class VoiceInterviewSession:
    def __init__(
        self,
        topic: str = DEFAULT_TOPIC,
        *,
        settings: Optional[VoiceSettings] = None,
        credential_provider: Optional[Callable[[], Awaitable[Credential]]] = None,
        signaling: Optional[SignalingClient] = None,
        open_media: Optional[Callable[[], Awaitable[LocalAudioCapture]]] = None,
        peer_factory: Optional[Callable[[], object]] = None,
        sink_factory: Optional[Callable[[], object]] = None,
        handoff: Optional[TranscriptHandoff] = None,
        configurator: Optional[SessionConfigurator] = None,
        on_state_change: Optional[StateListener] = None,
        on_transcript_change: Optional[TranscriptListener] = None,
    ):
        self.topic = str(topic or "").strip() or DEFAULT_TOPIC
        self.settings = settings or VoiceSettings()
        self.session_id = ""
        self.state = VoiceSessionState.IDLE
        self.error: Optional[str] = None
        self.transcript = TranscriptReconstructor(on_change=self._notify_transcript)

        self._credential_provider = credential_provider or CredentialFetcher()
        self._signaling = signaling or SignalingClient(model=self.settings.model)
        self._open_media = open_media or open_microphone
        self._peer_factory = peer_factory or RTCPeerConnection
        self._sink_factory = sink_factory or PlaybackSink
        self._handoff = handoff or default_handoff()
        self._configurator = configurator or SessionConfigurator(self.settings)
        self._on_state_change = on_state_change
        self._on_transcript_change = on_transcript_change

        # resources owned by the current attempt
        self._pc = None
        self._channel = None
        self._local_media: Optional[LocalAudioCapture] = None
        self._sink = None

        self._channel_open = asyncio.Event()
        self._config_ack = asyncio.Event()
        self._stopped = asyncio.Event()
        self._teardown_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._was_open = False

    # -------------------------
    # PUBLIC API
    # -------------------------

    @property
    def speaking(self) -> Speaking:
        return self.transcript.speaking

    @property
    def is_active(self) -> bool:
        return self.state not in STARTABLE_STATES

    def snapshot(self) -> dict:
        return {
            "session_id": self.session_id,
            "topic": self.topic,
            "state": self.state.value,
            "error": self.error,
            "speaking": self.speaking.value,
            "transcript": self.transcript.snapshot(),
        }

    async def start(self) -> bool:
        """
        Run the handshake. Returns True once the control channel is open,
        False when the attempt failed or was ended while connecting (see
        self.error). Raises SessionAlreadyActiveError if an attempt is live.
        """
        if self.state not in STARTABLE_STATES:
            increment_metric("voice_sessions_rejected")
            raise SessionAlreadyActiveError(self.state.value)

        self._reset_attempt()
        self._set_state(VoiceSessionState.CONNECTING)
        increment_metric("voice_sessions_started")
        log_event("voice", "session_start", self.session_id, topic=self.topic)
        started_at = time.monotonic()

        try:
            credential = await self._step("fetch_credential", self._credential_provider(), CredentialError)
            if self._stopping():
                return False

            media = await self._step("open_microphone", self._open_media(), MediaAccessError)
            if self._stopping():
                self._stop_tracks(list(media.tracks))
                return False
            self._local_media = media

            try:
                self._connect_transport(media)
            except Exception as exc:
                raise HandshakeError(f"could not create transport: {exc}") from exc

            pc = self._pc
            offer = await self._step("create_offer", pc.createOffer(), HandshakeError)
            await self._step("set_local_description", pc.setLocalDescription(offer), HandshakeError)
            if self._stopping():
                return False

            answer_sdp = await self._step(
                "exchange_offer",
                self._signaling.exchange(credential, pc.localDescription.sdp),
                HandshakeError,
            )
            if self._stopping():
                return False

            answer = RTCSessionDescription(sdp=answer_sdp, type="answer")
            await self._step("set_remote_description", pc.setRemoteDescription(answer), HandshakeError)
            await self._wait_for_channel_open()
        except VoiceSessionError as exc:
            if self._stopping():
                log_event("voice", "handshake_error_after_teardown", self.session_id, error=str(exc))
                return False
            await self._fail(exc, f"Connection failed: {exc}", reason="handshake_failed")
            return False

        if self._stopping():
            return False
        observe_handshake_ms((time.monotonic() - started_at) * 1000.0)
        return True

    async def end(self, reason: str = "user_end") -> None:
        """User "end", or component unmount. Safe to call any number of times."""
        if self.state == VoiceSessionState.IDLE:
            return
        await self._ensure_teardown(reason)

    async def wait_closed(self) -> None:
        if self._teardown_task is not None:
            await self._teardown_task

    # -------------------------
    # HANDSHAKE
    # -------------------------

    async def _step(self, name: str, awaitable, error_cls: type[VoiceSessionError]):
        log_event("voice", f"{name}_begin", self.session_id)
        try:
            result = await awaitable
        except VoiceSessionError:
            raise
        except Exception as exc:
            raise error_cls(f"{name} failed: {exc}") from exc
        log_event("voice", f"{name}_done", self.session_id)
        return result

    def _connect_transport(self, media: LocalAudioCapture) -> None:
        pc = self._peer_factory()
        self._pc = pc
        pc.on("track", lambda track: self._on_remote_track(pc, track))
        pc.on("iceconnectionstatechange", lambda: self._on_ice_state_change(pc))

        for track in media.tracks:
            pc.addTrack(track)

        # channel must exist before the offer so it is negotiated in the SDP
        channel = pc.createDataChannel(self.settings.control_channel_label)
        self._channel = channel
        channel.on("open", lambda: self._on_channel_open(channel))
        channel.on("message", lambda message: self._on_channel_message(channel, message))
        channel.on("close", lambda: self._on_channel_close(channel))

    async def _wait_for_channel_open(self) -> None:
        open_waiter = asyncio.ensure_future(self._channel_open.wait())
        stop_waiter = asyncio.ensure_future(self._stopped.wait())
        try:
            done, _ = await asyncio.wait(
                {open_waiter, stop_waiter},
                timeout=self.settings.channel_open_timeout_sec,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in (open_waiter, stop_waiter):
                if not waiter.done():
                    waiter.cancel()
        if not done:
            raise HandshakeError(
                f"control channel did not open within {self.settings.channel_open_timeout_sec:.1f}s"
            )

    # -------------------------
    # TRANSPORT CALLBACKS
    # -------------------------

    def _on_remote_track(self, pc, track) -> None:
        if pc is not self._pc or self._stopping():
            return
        if getattr(track, "kind", "") != "audio":
            log_event("voice", "remote_track_ignored", self.session_id, kind=getattr(track, "kind", ""))
            return
        if self._sink is None:
            self._sink = self._sink_factory()
        log_event("voice", "remote_audio_routed", self.session_id)
        self._spawn(self._attach_sink(self._sink, track))

    async def _attach_sink(self, sink, track) -> None:
        try:
            await sink.attach(track)
        except Exception as exc:
            logger.warning("playback attach failed | session_id=%s err=%s", self.session_id, exc)

    def _on_ice_state_change(self, pc) -> None:
        ice_state = str(getattr(pc, "iceConnectionState", "") or "")
        if pc is not self._pc:
            return
        log_event("voice", "ice_state_change", self.session_id, ice_state=ice_state)
        if ice_state in ICE_TERMINAL_STATES and not self._stopping():
            self._fail(TransportFailure(f"ice connection {ice_state}"), TransportFailure.default_message, "ice_" + ice_state)

    def _on_channel_open(self, channel) -> None:
        if channel is not self._channel or self._stopping():
            return
        self._set_state(VoiceSessionState.OPEN)
        self._was_open = True
        increment_metric("voice_sessions_open")
        self.transcript.seed_assistant(opening_question(self.topic))
        self._channel_open.set()
        self._spawn(self._configurator.configure(channel, self.topic, self._config_ack, self.session_id))

    def _on_channel_message(self, channel, message) -> None:
        if channel is not self._channel or self.state != VoiceSessionState.OPEN:
            return
        try:
            event = parse_event(message)
        except ReconstructionAnomaly as exc:
            increment_metric("voice_events_malformed")
            log_event("voice", "malformed_event", self.session_id, level=logging.WARNING, error=exc.detail)
            return

        if isinstance(event, UpstreamError):
            self._fail(
                UpstreamSessionError(event.message),
                f"Session error: {event.message or 'Unknown error'}",
                "upstream_error",
            )
            return
        if isinstance(event, SessionUpdated):
            self._config_ack.set()
            return
        if isinstance(event, UnknownEvent):
            increment_metric("voice_events_ignored")
            logger.debug("Unhandled server event type: %s", event.type)
            return
        self.transcript.apply(event)

    def _on_channel_close(self, channel) -> None:
        if channel is not self._channel:
            return
        log_event("voice", "control_channel_closed", self.session_id, state=self.state.value)
        if self.state == VoiceSessionState.CONNECTING:
            exc = HandshakeError("control channel closed before open")
            self._fail(exc, f"Connection failed: {exc}", "channel_closed_before_open")
            return
        self._ensure_teardown("channel_closed")

    # -------------------------
    # LIFECYCLE
    # -------------------------

    def _fail(self, exc: VoiceSessionError, banner: str, reason: str) -> asyncio.Task:
        if self._stopping():
            log_event("voice", "failure_after_teardown_ignored", self.session_id, reason=reason)
            return self._teardown_task
        self.error = banner
        record_voice_failure(type(exc).__name__)
        log_event(
            "voice",
            "session_failed",
            self.session_id,
            level=logging.ERROR,
            reason=reason,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        self._set_state(VoiceSessionState.FAILED)
        return self._ensure_teardown(reason)

    def _ensure_teardown(self, reason: str) -> asyncio.Task:
        if self._teardown_task is None:
            if self.state != VoiceSessionState.FAILED:
                self._set_state(VoiceSessionState.CLOSING)
            self._stopped.set()
            self._teardown_task = asyncio.get_running_loop().create_task(self._teardown(reason))
        return self._teardown_task

    def _stopping(self) -> bool:
        return self._teardown_task is not None

    async def _teardown(self, reason: str) -> None:
        increment_metric("voice_teardowns_total")
        log_event("voice", "teardown_begin", self.session_id, reason=reason, state=self.state.value)

        # 1. hand off whatever transcript exists
        if not self.transcript.is_empty():
            self._run_step("handoff", self._handoff_transcript)

        current = asyncio.current_task()
        for task in list(self._background):
            if task is not current and not task.done():
                task.cancel()

        # 2. control channel
        channel, self._channel = self._channel, None
        if channel is not None:
            self._run_step("close_channel", channel.close)

        # 3. local media, through every sender plus anything never attached
        pc = self._pc
        tracks: list = []
        if pc is not None:
            self._run_step("collect_senders", lambda: tracks.extend(
                sender.track for sender in pc.getSenders() if getattr(sender, "track", None) is not None
            ))
        media, self._local_media = self._local_media, None
        if media is not None:
            for track in media.tracks:
                if not any(track is known for known in tracks):
                    tracks.append(track)
        self._stop_tracks(tracks)

        # 4. transport
        self._pc = None
        if pc is not None:
            await self._run_step_async("close_transport", pc.close)

        # 5. playback
        sink, self._sink = self._sink, None
        if sink is not None:
            await self._run_step_async("close_playback", sink.close)

        # 6. back to a startable state
        if self._was_open:
            decrement_metric("voice_sessions_open")
            self._was_open = False
        self._set_state(VoiceSessionState.CLOSED)
        log_event("voice", "teardown_done", self.session_id, reason=reason, error=self.error or "")

    def _handoff_transcript(self) -> None:
        record = TranscriptRecord.build(self.session_id, self.topic, self.transcript.entries)
        self._handoff.handoff(record)

    def _stop_tracks(self, tracks: list) -> None:
        for track in tracks:
            self._run_step("stop_track", track.stop)

    def _run_step(self, name: str, fn: Callable[[], object]) -> None:
        try:
            fn()
        except Exception as exc:
            increment_metric("voice_teardown_step_errors")
            logger.warning("teardown step failed | session_id=%s step=%s err=%s", self.session_id, name, exc)

    async def _run_step_async(self, name: str, fn: Callable[[], Awaitable[object]]) -> None:
        try:
            await fn()
        except Exception as exc:
            increment_metric("voice_teardown_step_errors")
            logger.warning("teardown step failed | session_id=%s step=%s err=%s", self.session_id, name, exc)

    # -------------------------
    # INTERNALS
    # -------------------------

    def _reset_attempt(self) -> None:
        self.session_id = str(uuid.uuid4())
        self.error = None
        self.transcript.reset()
        self._channel_open = asyncio.Event()
        self._config_ack = asyncio.Event()
        self._stopped = asyncio.Event()
        self._teardown_task = None
        self._background = set()
        self._was_open = False

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _set_state(self, new_state: VoiceSessionState) -> None:
        if new_state == self.state:
            return
        if not can_transition(self.state, new_state):
            logger.warning(
                "illegal state transition ignored | session_id=%s %s -> %s",
                self.session_id,
                self.state.value,
                new_state.value,
            )
            return
        previous, self.state = self.state, new_state
        log_event("voice", "state_change", self.session_id, previous=previous.value, state=new_state.value)
        if self._on_state_change is not None:
            try:
                self._on_state_change(new_state, self.error)
            except Exception as exc:
                logger.warning("state listener failed | session_id=%s err=%s", self.session_id, exc)

    def _notify_transcript(self) -> None:
        if self._on_transcript_change is not None:
            self._on_transcript_change(self.transcript.snapshot(), self.transcript.speaking)
