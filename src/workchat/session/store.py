"""
Durable storage for the active workflow run id.

Only the run id is persisted; the conversation itself is rebuilt by
replaying the run's stream after a restart.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from workchat.logger import get_logger

logger = get_logger(__name__)

STORAGE_KEY = "workflow-run-id"


class SessionStore(ABC):
    """Synchronous get/set/clear capability for the run id."""

    @abstractmethod
    def get(self) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, run_id: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class MemorySessionStore(SessionStore):
    """Process-local store, used in tests and when embedding."""

    def __init__(self, run_id: Optional[str] = None):
        self._run_id = run_id

    def get(self) -> Optional[str]:
        return self._run_id

    def set(self, run_id: str) -> None:
        self._run_id = run_id

    def clear(self) -> None:
        self._run_id = None


class FileSessionStore(SessionStore):
    """
    JSON file store that survives process restarts.

    The file holds a flat key/value object so other client state can share
    it; this store only owns ``key``. Every ``get`` re-reads the file.
    """

    def __init__(self, path: str | Path, key: str = STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self) -> Optional[str]:
        value = self._read().get(self.key)
        return str(value) if value else None

    def set(self, run_id: str) -> None:
        data = self._read()
        data[self.key] = run_id
        self._write(data)
        logger.debug(f"Persisted run id {run_id} to {self.path}")

    def clear(self) -> None:
        data = self._read()
        if self.key in data:
            del data[self.key]
            self._write(data)
            logger.debug(f"Cleared run id from {self.path}")
