"""
Client-side key/value stores for persisted auth state.

Both stores follow the async storage interface the Supabase auth client expects
(get_item / set_item / remove_item), plus ``keys()`` so that stale session
entries can be enumerated and purged by prefix.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class MemorySessionStorage:
    """Process-scoped store. Lost when the process exits."""

    def __init__(self):
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._items)

    async def clear(self) -> None:
        self._items.clear()


class FileSessionStorage:
    """Durable store backed by a single JSON file.

    The file is rewritten on every change. A missing or corrupted file reads
    as an empty store.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable session file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items), encoding="utf-8")

    async def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    async def set_item(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = value
        self._write(items)

    async def remove_item(self, key: str) -> None:
        items = self._read()
        if key in items:
            del items[key]
            self._write(items)

    async def keys(self) -> list[str]:
        return list(self._read())

    async def clear(self) -> None:
        if self.path.exists():
            self._write({})
