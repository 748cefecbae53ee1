"""Persistent storage of custom object labels."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from object_labeler.services.feature_codec import encode_features

logger = logging.getLogger(__name__)


class LabelStoreError(RuntimeError):
    """Raised when the label store cannot be read or written."""


@dataclass
class LabelRecord:
    """A user-defined name bound to one object's fingerprint."""

    category: str
    custom_name: str
    feature_vector: str
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def as_dict(self) -> Dict:
        return {
            "id": self.id,
            "category": self.category,
            "custom_name": self.custom_name,
            "feature_vector": self.feature_vector,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Dict) -> "LabelRecord":
        created_at = datetime.fromisoformat(payload["created_at"]) if payload.get("created_at") else datetime.utcnow()
        updated_at = datetime.fromisoformat(payload["updated_at"]) if payload.get("updated_at") else created_at
        return cls(
            id=int(payload["id"]),
            category=payload["category"],
            custom_name=payload["custom_name"],
            feature_vector=payload["feature_vector"],
            created_at=created_at,
            updated_at=updated_at,
        )


class LabelStore:
    """JSON backed store of label records keyed by integer id.

    Every mutation rewrites the file. Reads come from memory, so the matcher
    thread never touches the disk.
    """

    def __init__(self, store_path: Path) -> None:
        self._store_path = Path(store_path)
        self._records: Dict[int, LabelRecord] = {}
        self._next_id = 1
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        if not self._store_path.exists():
            self._records = {}
            return
        try:
            with self._store_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
            records = {}
            for entry in payload.get("labels", []):
                record = LabelRecord.from_dict(entry)
                records[record.id] = record
            next_id = max(int(payload.get("next_id", 1)), max(records, default=0) + 1)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise LabelStoreError(f"Could not load label store {self._store_path}: {exc}") from exc
        self._records = records
        self._next_id = next_id
        logger.info("Loaded %d custom labels from %s", len(records), self._store_path)

    def _flush(self, records: Dict[int, LabelRecord], next_id: int) -> None:
        serialised = {
            "next_id": next_id,
            "labels": [record.as_dict() for record in records.values()],
        }
        tmp_path = self._store_path.with_suffix(self._store_path.suffix + ".tmp")
        try:
            self._store_path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(serialised, handle, indent=2)
            tmp_path.replace(self._store_path)
        except OSError as exc:
            raise LabelStoreError(f"Could not write label store {self._store_path}: {exc}") from exc

    def get_all(self) -> List[LabelRecord]:
        with self._lock:
            return list(self._records.values())

    def get_by_category(self, category: str) -> List[LabelRecord]:
        with self._lock:
            return [record for record in self._records.values() if record.category == category]

    def get_by_id(self, record_id: int) -> Optional[LabelRecord]:
        with self._lock:
            return self._records.get(record_id)

    def contains(self, record_id: int) -> bool:
        with self._lock:
            return record_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def upsert(self, record: LabelRecord) -> int:
        """Insert ``record`` or replace the record sharing its id.

        A record without an id (or with id 0) gets the next free id.
        ``record`` itself is not mutated.
        """
        return self._store(record).id

    def _store(self, record: LabelRecord) -> LabelRecord:
        name = record.custom_name.strip()
        if not name:
            raise ValueError("Custom name must not be empty")

        with self._lock:
            records = dict(self._records)
            next_id = self._next_id
            now = datetime.utcnow()
            if record.id:
                record_id = record.id
                existing = records.get(record_id)
                created_at = existing.created_at if existing else record.created_at
            else:
                record_id = next_id
                created_at = now
            stored = replace(record, id=record_id, custom_name=name, created_at=created_at, updated_at=now)
            records[record_id] = stored
            next_id = max(next_id, record_id + 1)

            self._flush(records, next_id)
            self._records = records
            self._next_id = next_id

        logger.info("Stored custom label %r (id=%d, category=%r)", name, record_id, record.category)
        return stored

    def save_label(
        self,
        category: str,
        custom_name: str,
        features: Sequence[float],
        record_id: Optional[int] = None,
    ) -> LabelRecord:
        record = LabelRecord(
            id=record_id,
            category=category,
            custom_name=custom_name,
            feature_vector=encode_features(features),
        )
        return self._store(record)

    def delete_by_id(self, record_id: int) -> None:
        with self._lock:
            if record_id not in self._records:
                return
            records = dict(self._records)
            removed = records.pop(record_id)
            self._flush(records, self._next_id)
            self._records = records
        logger.info("Deleted custom label %r (id=%d)", removed.custom_name, record_id)
