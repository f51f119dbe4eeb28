import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4o-mini").strip()  # text chat coach
QA_MODE = _env_flag("QA_MODE")

# Realtime voice upstream
REALTIME_MODEL = str(os.getenv("REALTIME_MODEL") or "gpt-4o-realtime-preview").strip()
REALTIME_VOICE = str(os.getenv("REALTIME_VOICE") or "ash").strip()
REALTIME_BASE_URL = str(os.getenv("REALTIME_BASE_URL") or "https://api.openai.com/v1/realtime").strip()
REALTIME_SESSIONS_URL = str(
    os.getenv("REALTIME_SESSIONS_URL") or "https://api.openai.com/v1/realtime/sessions"
).strip()
TRANSCRIPTION_MODEL = str(os.getenv("TRANSCRIPTION_MODEL") or "whisper-1").strip()

# Server VAD turn policy
VAD_THRESHOLD = min(1.0, max(0.0, float(os.getenv("VAD_THRESHOLD", "0.5"))))
VAD_PREFIX_PADDING_MS = max(0, int(os.getenv("VAD_PREFIX_PADDING_MS", "300")))
VAD_SILENCE_MS = max(200, int(os.getenv("VAD_SILENCE_MS", "800")))
VAD_CREATE_RESPONSE = _env_flag("VAD_CREATE_RESPONSE", "true")

# Voice client
CREDENTIAL_ENDPOINT_URL = str(
    os.getenv("CREDENTIAL_ENDPOINT_URL") or "http://127.0.0.1:8000/api/openai/token"
).strip()
HTTP_TIMEOUT_SEC = max(2.0, float(os.getenv("HTTP_TIMEOUT_SEC", "20")))
CHANNEL_OPEN_TIMEOUT_SEC = max(1.0, float(os.getenv("CHANNEL_OPEN_TIMEOUT_SEC", "15")))
CONFIG_ACK_TIMEOUT_SEC = max(0.1, float(os.getenv("CONFIG_ACK_TIMEOUT_SEC", "1.0")))
MIC_DEVICE = str(os.getenv("MIC_DEVICE") or "default").strip()
MIC_FORMAT = str(os.getenv("MIC_FORMAT") or "pulse").strip()
PLAYBACK_DEVICE = str(os.getenv("PLAYBACK_DEVICE") or "").strip()
PLAYBACK_FORMAT = str(os.getenv("PLAYBACK_FORMAT") or "").strip()

DATA_DIR = str(os.getenv("DATA_DIR") or str(_BACKEND_ROOT / "_data")).strip()
