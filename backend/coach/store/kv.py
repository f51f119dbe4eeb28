from __future__ import annotations

import json
from pathlib import Path
from threading import Lock
from typing import Any, Protocol


class KeyValueBackend(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> Any:
        ...

    def keys(self, prefix: str = "") -> list[str]:
        ...


class MemoryBackend:
    def __init__(self):
        self._lock = Lock()
        self._data: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> Any:
        with self._lock:
            return self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [key for key in self._data if key.startswith(prefix)]


class JsonFileBackend:
    """
    Whole-document JSON persistence. Loaded on init, rewritten through a temp
    file on every write. With shared=True every read reloads from disk first,
    for a reader whose writer lives in another process.
    """

    def __init__(self, path: str | Path, shared: bool = False):
        self._lock = Lock()
        self._path = Path(path)
        self._shared = shared
        self._data: dict[str, Any] = self._load()

    def _refresh(self) -> None:
        if self._shared:
            self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(key): value for key, value in payload.items()}

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self._data, ensure_ascii=False), encoding="utf-8")
        temp_path.replace(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            self._refresh()
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._refresh()
            self._data[key] = value
            self._persist()

    def delete(self, key: str) -> Any:
        with self._lock:
            self._refresh()
            if key not in self._data:
                return None
            value = self._data.pop(key)
            self._persist()
            return value

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            self._refresh()
            return [key for key in self._data if key.startswith(prefix)]
