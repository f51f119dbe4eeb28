import json
import logging
from typing import Any

logging.basicConfig(
	format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
	level=logging.INFO,
)

logger = logging.getLogger("coach.events")

_REDACTED_KEYS = {"text", "delta", "transcript", "instructions", "prompt", "token", "credential"}


def _sanitize_value(key: str, value: Any) -> Any:
	normalized_key = str(key or "").lower()
	if normalized_key in _REDACTED_KEYS:
		text = str(value or "")
		return {
			"redacted": True,
			"length": len(text),
		}
	if isinstance(value, (str, int, float, bool)) or value is None:
		return value
	if isinstance(value, dict):
		return {str(k): _sanitize_value(str(k), v) for k, v in value.items()}
	if isinstance(value, (list, tuple, set)):
		return [_sanitize_value(normalized_key, item) for item in value]
	return str(value)


def log_event(component: str, event: str, session_id: str, level: int = logging.INFO, **kwargs) -> None:
	payload = {
		"component": str(component or "coach"),
		"event": str(event or "unknown"),
		"session_id": str(session_id or ""),
	}
	payload.update({str(k): _sanitize_value(str(k), v) for k, v in kwargs.items()})
	logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
