"""Realtime voice mock-interview client."""

from .errors import (
    CredentialError,
    HandshakeError,
    MediaAccessError,
    ReconstructionAnomaly,
    SessionAlreadyActiveError,
    TransportFailure,
    UpstreamSessionError,
    VoiceSessionError,
)
from .handoff import HandoffStore, TranscriptHandoff, TranscriptRecord
from .session import VoiceInterviewSession
from .transcript import Speaker, Speaking, TranscriptEntry, TranscriptReconstructor

__all__ = [
    "CredentialError",
    "HandshakeError",
    "HandoffStore",
    "MediaAccessError",
    "ReconstructionAnomaly",
    "SessionAlreadyActiveError",
    "Speaker",
    "Speaking",
    "TranscriptEntry",
    "TranscriptHandoff",
    "TranscriptReconstructor",
    "TranscriptRecord",
    "TransportFailure",
    "UpstreamSessionError",
    "VoiceInterviewSession",
    "VoiceSessionError",
]
