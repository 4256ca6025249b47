"""Read-through cache for query results, invalidated by committed changes.

Entries are keyed by (entity, params) and remember the row ids they hold.
A change event that carries an id drops only the entries holding that id (plus
the list entries of the table when a row was inserted, since it may belong in
them). An event without an id drops every entry of the table.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Set, Tuple

from tontine.db.events import ChangeBus, ChangeEvent, INSERT, UPDATE, bus

logger = logging.getLogger(__name__)

# A change to the left table also affects entries of the right table whose id
# equals the named column of the changed row.
RELATED_TABLES: Dict[str, List[Tuple[str, str]]] = {
    "payments": [("cycles", "cycle_id"), ("groups", "group_id")],
    "cycles": [("groups", "group_id")],
    "group_members": [("groups", "group_id")],
    "notification_receipts": [("notifications", "notification_id")],
}

CacheKey = Tuple[str, Tuple[Tuple[str, Hashable], ...]]


@dataclass
class CacheEntry:
    value: Any
    row_ids: Set[Any] = field(default_factory=set)
    is_list: bool = False


class QueryCache:
    def __init__(self, change_bus: Optional[ChangeBus] = None):
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        if change_bus is not None:
            change_bus.subscribe("*", self.handle_change)

    @staticmethod
    def make_key(entity: str, params: Optional[Dict[str, Hashable]] = None) -> CacheKey:
        return entity, tuple(sorted((params or {}).items()))

    def get_or_load(
        self,
        entity: str,
        params: Optional[Dict[str, Hashable]],
        loader: Callable[[], Any],
        row_ids: Callable[[Any], Iterable[Any]] = lambda value: (),
        is_list: bool = False,
    ) -> Any:
        key = self.make_key(entity, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self.hits += 1
                return entry.value
            generation = self._generations.get(entity, 0)
        self.misses += 1
        value = loader()
        with self._lock:
            # An invalidation that landed mid-load may already cover this value
            if self._generations.get(entity, 0) != generation:
                logger.debug("Discarding %s result invalidated during load", entity)
                return value
            self._entries[key] = CacheEntry(value=value, row_ids=set(row_ids(value)), is_list=is_list)
        return value

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def invalidate(self, entity: str, row_id: Any = None, include_lists: bool = False) -> int:
        """Drop entries of ``entity``; all of them when ``row_id`` is None."""
        with self._lock:
            self._generations[entity] = self._generations.get(entity, 0) + 1
            doomed = [
                key for key, entry in self._entries.items()
                if key[0] == entity and (
                    row_id is None
                    or row_id in entry.row_ids
                    or (include_lists and entry.is_list)
                )
            ]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def handle_change(self, change: ChangeEvent) -> None:
        row_id = change.row_id
        if row_id is None:
            dropped = self.invalidate(change.table)
        else:
            dropped = self.invalidate(change.table, row_id, include_lists=change.type == INSERT)
        for related_table, column in RELATED_TABLES.get(change.table, []):
            related_id = change.row.get(column)
            if related_id is None:
                dropped += self.invalidate(related_table)
            else:
                # Adding or removing a child row can change which parents a list holds
                dropped += self.invalidate(related_table, related_id, include_lists=change.type != UPDATE)
        if dropped:
            logger.debug("Invalidated %d cache entries after %s on %s", dropped, change.type, change.table)


query_cache = QueryCache(bus)
