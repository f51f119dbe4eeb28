# backend/core/state.py

from enum import Enum


class VoiceSessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


# start() is only accepted from these
STARTABLE_STATES = frozenset({VoiceSessionState.IDLE, VoiceSessionState.CLOSED})

# state -> states it may move to
ALLOWED_TRANSITIONS = {
    VoiceSessionState.IDLE: {VoiceSessionState.CONNECTING},
    VoiceSessionState.CONNECTING: {
        VoiceSessionState.OPEN,
        VoiceSessionState.CLOSING,
        VoiceSessionState.FAILED,
    },
    VoiceSessionState.OPEN: {VoiceSessionState.CLOSING, VoiceSessionState.FAILED},
    VoiceSessionState.CLOSING: {VoiceSessionState.CLOSED, VoiceSessionState.FAILED},
    VoiceSessionState.FAILED: {VoiceSessionState.CLOSED},
    VoiceSessionState.CLOSED: {VoiceSessionState.CONNECTING},
}


def can_transition(current: VoiceSessionState, target: VoiceSessionState) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())
