import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from loguru import logger

from ..exceptions import StorageError


class KeyValueStore(Protocol):
    """Minimal get/set-by-key storage the host supplies to the registry."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemoryStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.store: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    def set(self, key: str, value: str) -> None:
        self.store[key] = value


class JsonFileStore:
    """Keeps every key in one JSON object on disk.

    Writes go to a temporary file in the same directory which then replaces
    the original, so a crash mid-write leaves the previous contents intact.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read store '{self.path}': {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"Store '{self.path}' does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Cannot write store '{self.path}': {exc}") from exc
        logger.debug(f"[storage] wrote key {key!r} to {self.path}")
