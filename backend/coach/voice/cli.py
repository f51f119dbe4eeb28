import argparse
import asyncio
import functools
import sys

from coach.prompts import DEFAULT_TOPIC
from coach.voice.credentials import CredentialFetcher
from coach.voice.handoff import TranscriptRecord
from coach.voice.media import PlaybackSink, open_microphone
from coach.voice.session import VoiceInterviewSession, default_handoff
from coach.voice.settings import VoiceSettings
from coach.voice.signaling import SignalingClient
from coach.voice.transcript import Speaking
from core import config
from core.state import VoiceSessionState

LABELS = {"user": "You", "assistant": "Interviewer"}


class ConsoleView:
    """Prints state changes and each transcript line as it settles."""

    def __init__(self):
        self.closed = asyncio.Event()
        self._printed: list[str] = []

    def on_state(self, state: VoiceSessionState, error):
        if state == VoiceSessionState.OPEN:
            print("✔ Connection established. Speak into your mic… (Ctrl-C to end)")
        elif state == VoiceSessionState.CONNECTING:
            print("Connecting...")
        elif state == VoiceSessionState.FAILED:
            print(f"Error: {error}", file=sys.stderr)
        elif state == VoiceSessionState.CLOSED:
            self.closed.set()

    def on_transcript(self, entries: list[dict], speaking: Speaking):
        # only completed lines; the last one may still be growing
        settled = entries if speaking == Speaking.NONE else entries[:-1]
        for index, entry in enumerate(settled):
            line = f"{LABELS.get(entry['from'], entry['from'])}: {entry['text']}"
            if index < len(self._printed):
                if self._printed[index] == line:
                    continue
                self._printed[index] = line
            else:
                self._printed.append(line)
            print(line)

    def on_handoff(self, data_dir: str, record: TranscriptRecord):
        print(f"Transcript saved for scoring: session={record.session_id} store={data_dir}/handoff.json")


async def run(args) -> int:
    view = ConsoleView()
    settings = VoiceSettings()
    session = VoiceInterviewSession(
        topic=args.topic,
        settings=settings,
        credential_provider=CredentialFetcher(endpoint_url=args.credential_url),
        signaling=SignalingClient(model=settings.model),
        open_media=functools.partial(open_microphone, args.mic_device, args.mic_format),
        sink_factory=functools.partial(PlaybackSink, args.playback_device, args.playback_format),
        handoff=default_handoff(args.data_dir, on_ready=functools.partial(view.on_handoff, args.data_dir)),
        on_state_change=view.on_state,
        on_transcript_change=view.on_transcript,
    )

    try:
        if not await session.start():
            await session.wait_closed()
            return 1
        await view.closed.wait()
    finally:
        await session.end("unmount")

    return 1 if session.error else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Realtime voice mock interview")
    parser.add_argument("--topic", default=DEFAULT_TOPIC)
    parser.add_argument("--credential-url", default=config.CREDENTIAL_ENDPOINT_URL)
    parser.add_argument("--mic-device", default=config.MIC_DEVICE)
    parser.add_argument("--mic-format", default=config.MIC_FORMAT)
    parser.add_argument("--playback-device", default=config.PLAYBACK_DEVICE)
    parser.add_argument("--playback-format", default=config.PLAYBACK_FORMAT)
    parser.add_argument("--data-dir", default=config.DATA_DIR)
    args = parser.parse_args(argv)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
