from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional


class KeyValueStorage(ABC):
    """
    Abstract interface for the string key-value persistence used by Filters
    and selection saving (browser localStorage, a file store, a cache, ...).

    Values are JSON-encoded strings; encoding is the caller's concern.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete the key; absent keys are ignored."""
        pass


class InMemoryStorage(KeyValueStorage):
    """
    Process-local storage, used as the default fake in tests.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class LocalFileSystemStorage(KeyValueStorage):
    """
    Local filesystem implementation: one `<key>.json` file per key under `root`.
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        safe_key = _UNSAFE_KEY_CHARS.sub("_", key)
        full_path = (self.root / f"{safe_key}.json").resolve()
        # Prevent path traversal attacks
        if full_path.parent != self.root:
            raise ValueError(f"Access denied: {key}")
        return full_path

    def get(self, key: str) -> Optional[str]:
        path = self._resolve(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self._resolve(key).write_text(value, encoding="utf-8")

    def remove(self, key: str) -> None:
        self._resolve(key).unlink(missing_ok=True)
