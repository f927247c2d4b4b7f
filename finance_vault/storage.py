"""
Storage handles: the two singleton slots the vault reads and writes.

- ``MemoryStorage`` plays the role of session-scoped storage: it lives as
  long as the process and is never written to disk. The session key lives here.
- ``FileStorage`` is durable local storage: a single JSON document of
  ``{key: str}`` pairs, rewritten wholesale on every write.

Write failures on ``FileStorage`` (disk full, read-only path) propagate to the
caller; there is no fallback tier below raw storage.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import orjson

logger = logging.getLogger("finance.storage")


class Storage(ABC):
    """String key/value storage with a localStorage-like contract."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete ``key``. No-op if it is absent."""

    @abstractmethod
    def clear(self) -> None:
        """Delete every key."""

    def __contains__(self, key: object) -> bool:
        return self.get_item(str(key)) is not None


class MemoryStorage(Storage):
    """Process-lifetime storage; the equivalent of a browser session."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()

    def __repr__(self) -> str:
        return f'<MemoryStorage keys={sorted(self._items)}>'


class FileStorage(Storage):
    """Durable storage backed by one JSON file.

    The file is read once on construction; every write rewrites it.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._items: dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = orjson.loads(self._path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as err:
            logger.error(
                "Unreadable storage file %s, starting empty: %s", self._path, err
            )
            return {}
        if not isinstance(raw, dict):
            logger.error("Storage file %s is not a JSON object", self._path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_bytes(orjson.dumps(items))
        tmp.replace(self._path)
        self._items = items

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._flush({**self._items, key: value})

    def remove_item(self, key: str) -> None:
        if key in self._items:
            self._flush({k: v for k, v in self._items.items() if k != key})

    def clear(self) -> None:
        self._flush({})

    def __repr__(self) -> str:
        return f'<FileStorage path={str(self._path)!r}>'
