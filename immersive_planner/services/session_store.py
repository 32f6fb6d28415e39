# services/session_store.py
"""
Session-resume store.

Keeps the small amount of per-client state that lets a reload resume the same
plan and wizard step without a round trip to the document store. Only the keys
enumerated in SessionKey are recognized.
"""
import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class SessionKey(str, Enum):
    lesson_plan_id = "lessonPlanId"
    current_step = "currentStep"


class SessionResumeStore(Protocol):
    def get(self, key: SessionKey) -> Optional[str]: ...

    def set(self, key: SessionKey, value: str) -> None: ...

    def delete(self, key: SessionKey) -> None: ...


class InMemorySessionStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: SessionKey) -> Optional[str]:
        return self._data.get(SessionKey(key).value)

    def set(self, key: SessionKey, value: str) -> None:
        self._data[SessionKey(key).value] = str(value)

    def delete(self, key: SessionKey) -> None:
        self._data.pop(SessionKey(key).value, None)


class JsonFileSessionStore:
    """One small JSON document per client, e.g. <dir>/<client_id>.json."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def for_client(cls, directory, client_id: str) -> "JsonFileSessionStore":
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", client_id) or "default"
        return cls(Path(directory) / f"{safe_id}.json")

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            # a corrupt session file is treated like an empty session
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)

    def get(self, key: SessionKey) -> Optional[str]:
        value = self._read().get(SessionKey(key).value)
        return None if value is None else str(value)

    def set(self, key: SessionKey, value: str) -> None:
        data = self._read()
        data[SessionKey(key).value] = str(value)
        self._write(data)

    def delete(self, key: SessionKey) -> None:
        data = self._read()
        if data.pop(SessionKey(key).value, None) is not None:
            self._write(data)
