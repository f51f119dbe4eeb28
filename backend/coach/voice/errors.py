from __future__ import annotations


class VoiceSessionError(Exception):
    """Base for every failure the voice client surfaces to the user."""

    fatal = True
    default_message = "Voice session failed."

    def __init__(self, detail: str = "", user_message: str | None = None):
        super().__init__(detail or self.default_message)
        self.detail = str(detail or "")
        self.user_message = str(user_message or self.default_message)


class CredentialError(VoiceSessionError):
    default_message = "Could not get a session token. Please try again."


class MediaAccessError(VoiceSessionError):
    default_message = "Microphone unavailable. Check the device and permissions."


class HandshakeError(VoiceSessionError):
    default_message = "Connection failed while negotiating the audio session."


class TransportFailure(VoiceSessionError):
    default_message = "Connection lost. Please try reconnecting."


class UpstreamSessionError(VoiceSessionError):
    default_message = "Session error: Unknown error"


class ReconstructionAnomaly(VoiceSessionError):
    """Malformed control-channel frame. Logged and dropped, never fatal."""

    fatal = False
    default_message = "Ignored malformed event."


class SessionAlreadyActiveError(RuntimeError):
    def __init__(self, state: str):
        super().__init__(f"voice session already active (state={state})")
        self.state = state
