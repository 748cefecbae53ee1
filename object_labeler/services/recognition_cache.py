"""Session-scoped cache of resolved custom labels keyed by tracking id."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class CachedLabel:
    custom_name: str
    record_id: int


class RecognitionCache:
    """Thread-safe map from detector tracking id to a resolved label.

    Tracking ids are only meaningful inside one camera session, so a cache
    must be cleared or replaced whenever the session restarts. Only positive
    matches are cached; an absent entry means "not resolved yet".
    """

    def __init__(self) -> None:
        self._entries: Dict[int, CachedLabel] = {}
        self._lock = threading.Lock()

    def get(self, tracking_id: int) -> Optional[CachedLabel]:
        with self._lock:
            return self._entries.get(tracking_id)

    def put(self, tracking_id: int, custom_name: str, record_id: int) -> CachedLabel:
        entry = CachedLabel(custom_name=custom_name, record_id=record_id)
        with self._lock:
            self._entries[tracking_id] = entry
        return entry

    def populate(self, tracking_id: int, custom_name: str, record_id: int) -> CachedLabel:
        """Cache a background match unless an entry appeared meanwhile.

        Matching only starts after a miss, so an entry present now was
        written by a user save or a concurrent match and is kept.
        """
        entry = CachedLabel(custom_name=custom_name, record_id=record_id)
        with self._lock:
            return self._entries.setdefault(tracking_id, entry)

    def remove(self, tracking_id: int) -> Optional[CachedLabel]:
        with self._lock:
            return self._entries.pop(tracking_id, None)

    def invalidate_if_stale(
        self,
        tracking_id: int,
        is_valid: Callable[[CachedLabel], bool],
    ) -> Optional[CachedLabel]:
        """Return the entry for ``tracking_id`` if ``is_valid`` accepts it.

        A rejected entry is dropped, unless another writer replaced it while
        ``is_valid`` was running.
        """
        entry = self.get(tracking_id)
        if entry is None or is_valid(entry):
            return entry
        with self._lock:
            if self._entries.get(tracking_id) == entry:
                del self._entries[tracking_id]
        return None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def snapshot(self) -> Dict[int, CachedLabel]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, tracking_id: object) -> bool:
        with self._lock:
            return tracking_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
