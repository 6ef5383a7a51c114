from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from resource_kit.services.storage import KeyValueStorage

logger = logging.getLogger(__name__)

# Keys that only make sense in memory and are never persisted with an item.
TRANSIENT_ITEM_KEYS = frozenset({"list_resource", "node"})


def serialisable_item(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in item.items() if k not in TRANSIENT_ITEM_KEYS}


class SelectionStore:
    """
    Persists a list's selected items under `<list id>-selected` and the
    selection length under `<list id>-selected-length`.

    Storage failures are logged, never raised: a broken store degrades to
    an empty selection.
    """

    def __init__(self, storage: Optional[KeyValueStorage], list_id: str):
        self.storage = storage
        self.selection_key = f"{list_id}-selected"
        self.length_key = f"{list_id}-selected-length"

    def save(self, items: Iterable[Dict[str, Any]]) -> None:
        if self.storage is None:
            return
        rows = [serialisable_item(item) for item in items]
        try:
            self.storage.set(self.selection_key, json.dumps(rows, default=str))
            self.storage.set(self.length_key, str(len(rows)))
        except Exception:
            logger.exception("Failed to persist selection", extra={"key": self.selection_key})

    def load(self) -> List[Dict[str, Any]]:
        if self.storage is None:
            return []
        raw = self.storage.get(self.selection_key)
        if not raw:
            return []
        try:
            rows = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable saved selection", extra={"key": self.selection_key})
            return []
        return [row for row in rows if isinstance(row, dict)] if isinstance(rows, list) else []

    def count(self) -> int:
        if self.storage is None:
            return 0
        try:
            return int(self.storage.get(self.length_key) or 0)
        except ValueError:
            return 0

    def clear(self) -> None:
        if self.storage is None:
            return
        self.storage.remove(self.selection_key)
        self.storage.remove(self.length_key)
