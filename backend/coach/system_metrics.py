import threading
import time
from typing import Any


_lock = threading.Lock()
_COUNTER_NAMES = (
    "voice_sessions_started",
    "voice_sessions_open",
    "voice_sessions_rejected",
    "voice_sessions_failed",
    "voice_failures_credential",
    "voice_failures_media",
    "voice_failures_handshake",
    "voice_failures_transport",
    "voice_failures_upstream",
    "voice_teardowns_total",
    "voice_teardown_step_errors",
    "voice_handoffs_written",
    "voice_events_ignored",
    "voice_events_malformed",
    "tokens_minted",
    "token_mint_failures",
    "chat_requests",
    "chat_failures",
    "handshake_total_ms",
    "handshake_samples",
)
_metrics: dict[str, float] = {name: 0.0 for name in _COUNTER_NAMES}

_FAILURE_KEYS = {
    "CredentialError": "voice_failures_credential",
    "MediaAccessError": "voice_failures_media",
    "HandshakeError": "voice_failures_handshake",
    "TransportFailure": "voice_failures_transport",
    "UpstreamSessionError": "voice_failures_upstream",
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def observe_handshake_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["handshake_total_ms"] = float(_metrics.get("handshake_total_ms", 0.0)) + latency
        _metrics["handshake_samples"] = float(_metrics.get("handshake_samples", 0.0)) + 1.0


def record_voice_failure(error_name: str) -> None:
    metric_key = _FAILURE_KEYS.get(str(error_name or ""), "")
    with _lock:
        _metrics["voice_sessions_failed"] = float(_metrics.get("voice_sessions_failed", 0.0)) + 1.0
        if metric_key:
            _metrics[metric_key] = float(_metrics.get(metric_key, 0.0)) + 1.0


def reset_metrics() -> None:
    with _lock:
        for key in list(_metrics):
            _metrics[key] = 0.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    handshake_samples = max(1.0, float(data.get("handshake_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for key, value in data.items():
        if key in {"handshake_total_ms"}:
            payload[key] = float(value or 0.0)
        else:
            payload[key] = int(value or 0.0)
    payload["avg_handshake_ms"] = round(float(data.get("handshake_total_ms") or 0.0) / handshake_samples, 2)

    if extra:
        payload.update(extra)
    return payload
