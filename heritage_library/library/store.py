"""
In-memory store for the resource library.

All categories are loaded once from ``<knowledge>/<category>/data.json``
and kept in memory; mutations only touch memory until ``persist()`` is
called, which rewrites every category document in full. Callers decide
when to flush, typically once after a group of mutations.

Historic ``data.json`` files come in three shapes (a flat list, an
envelope ``{"resources": ...}`` or a raw id-keyed map). Each category is
wrapped in a ``ResourceCollection`` which resolves the shape once, the
first time a record is looked up by id, and from then on is always an
id-keyed map. Documents are always written back as a raw id-keyed map.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import PersistenceError, ResourceNotFoundError, ResourceValidationError
from .schemas import ResourceBase

logger = logging.getLogger(__name__)

DATA_FILE_NAME = "data.json"

Record = Dict[str, Any]


def utc_now_iso() -> str:
    """Current UTC time as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _only_records(mapping: Dict[str, Any]) -> Dict[str, Record]:
    return {str(key): value for key, value in mapping.items() if isinstance(value, dict)}


class ResourceCollection:
    """The records of one category.

    The collection is either list-shaped (straight from a legacy
    document) or an id-keyed map. ``records()`` converts a list into a
    map the first time it is called; records without an id receive a
    synthetic ``item_<index>`` id.
    """

    def __init__(self, raw: Union[List[Any], Dict[str, Record], None] = None):
        self._raw: Union[List[Any], Dict[str, Record]] = {} if raw is None else raw

    @classmethod
    def from_document(cls, data: Any) -> "ResourceCollection":
        """Build a collection from a parsed ``data.json`` document.

        Raises
        ------
        ValueError
            When the top-level JSON value is neither a list nor an object.
        """
        if isinstance(data, list):
            # Flat lists only keep records that already carry an id.
            return cls(
                {
                    str(item["id"]): item
                    for item in data
                    if isinstance(item, dict) and item.get("id")
                }
            )
        if isinstance(data, dict):
            envelope = data.get("resources")
            if isinstance(envelope, dict):
                return cls(_only_records(envelope))
            if isinstance(envelope, list):
                return cls(list(envelope))
            return cls(_only_records(data))
        raise ValueError(f"unsupported document type: {type(data).__name__}")

    @property
    def is_normalized(self) -> bool:
        return isinstance(self._raw, dict)

    def records(self) -> Dict[str, Record]:
        if isinstance(self._raw, list):
            normalized: Dict[str, Record] = {}
            for index, record in enumerate(self._raw):
                if not isinstance(record, dict):
                    continue
                key = str(record.get("id") or f"item_{index}")
                record["id"] = key
                normalized[key] = record
            self._raw = normalized
        return self._raw

    def values(self) -> List[Record]:
        """Records in stored order, without forcing normalization."""
        items = self._raw.values() if isinstance(self._raw, dict) else self._raw
        return [record for record in items if isinstance(record, dict)]

    def __len__(self) -> int:
        return len(self.values())


class CategoryStore:
    """Process-wide mapping from category name to its resources.

    A single re-entrant lock guards every mutation and every flush.
    ``lock`` is public so that multi-step operations (batches, media
    edits) can hold it across their whole mutate-then-persist sequence.
    Reads hand out deep copies; shared records are only ever changed
    through the store's own methods.
    """

    def __init__(self, knowledge_dir: Union[str, Path]):
        self.knowledge_dir = Path(knowledge_dir)
        self.lock = threading.RLock()
        self._collections: Dict[str, ResourceCollection] = {}

    # ------------------------------------------------------------------
    # Loading and persistence

    def load(self) -> None:
        """(Re)load every category document from the knowledge directory."""
        with self.lock:
            self._collections = {}
            if not self.knowledge_dir.exists():
                logger.info("Knowledge directory %s does not exist, creating it", self.knowledge_dir)
                self.knowledge_dir.mkdir(parents=True, exist_ok=True)
                return

            for entry in sorted(self.knowledge_dir.iterdir()):
                if entry.is_dir():
                    self._collections[entry.name] = self._load_category(entry)
            logger.info(
                "Resource library loaded: %d categories, %d resources",
                len(self._collections),
                self.count(),
            )

    def _load_category(self, directory: Path) -> ResourceCollection:
        data_file = directory / DATA_FILE_NAME
        if not data_file.exists():
            return ResourceCollection()
        try:
            with data_file.open("r", encoding="utf-8") as f:
                data = json.load(f)
            collection = ResourceCollection.from_document(data)
        except (OSError, ValueError) as exc:
            logger.error("Failed to parse category %s from %s: %s", directory.name, data_file, exc)
            return ResourceCollection()
        logger.info("Loaded category %s: %d resources", directory.name, len(collection))
        return collection

    def persist(self) -> None:
        """Rewrite every category's ``data.json``.

        Raises
        ------
        PersistenceError
            On the first category that cannot be written. Categories
            written before the failure stay on disk.
        """
        with self.lock:
            for category, collection in self._collections.items():
                self._write_category(category, collection.records())
            logger.info("Resource library saved (%d categories)", len(self._collections))

    def _write_category(self, category: str, records: Dict[str, Record]) -> None:
        directory = self.knowledge_dir / category
        data_file = directory / DATA_FILE_NAME
        tmp_file = directory / f"{DATA_FILE_NAME}.tmp"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tmp_file.open("w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp_file, data_file)
        except OSError as exc:
            logger.error("Failed to save category %s: %s", category, exc)
            raise PersistenceError(category, exc) from exc

    # ------------------------------------------------------------------
    # Reads

    def categories(self) -> List[str]:
        with self.lock:
            return list(self._collections)

    def count(self) -> int:
        with self.lock:
            return sum(len(collection) for collection in self._collections.values())

    def find(self, category: str, resource_id: str) -> Optional[Record]:
        """Return a copy of one record, or ``None`` when it does not exist."""
        with self.lock:
            collection = self._collections.get(category)
            if collection is None:
                return None
            record = collection.records().get(str(resource_id))
            if record is None:
                return None
            record["category"] = category
            return copy.deepcopy(record)

    def get(self, category: str, resource_id: str) -> Record:
        record = self.find(category, resource_id)
        if record is None:
            raise ResourceNotFoundError(category, str(resource_id))
        return record

    def exists(self, category: str, resource_id: str) -> bool:
        with self.lock:
            collection = self._collections.get(category)
            return collection is not None and str(resource_id) in collection.records()

    def category_records(self, category: str) -> List[Record]:
        """Copies of every record in ``category`` (empty for unknown names)."""
        with self.lock:
            collection = self._collections.get(category)
            if collection is None:
                return []
            records = copy.deepcopy(collection.values())
        for record in records:
            record["category"] = category
        return records

    def snapshot(self) -> Dict[str, List[Record]]:
        """Point-in-time copy of the whole library, category by category."""
        with self.lock:
            return {
                category: copy.deepcopy(collection.values())
                for category, collection in self._collections.items()
            }

    # ------------------------------------------------------------------
    # Mutations

    @staticmethod
    def _check_category(category: str) -> None:
        if not category or category in (".", "..") or "/" in category or "\\" in category:
            raise ResourceValidationError(f"invalid category name: {category!r}")

    def replace_category(self, category: str, records: Union[List[Record], Dict[str, Record]]) -> None:
        """Install ``records`` as the whole content of ``category``.

        A list is kept list-shaped until the first keyed access.
        """
        self._check_category(category)
        with self.lock:
            self._collections[category] = ResourceCollection(copy.deepcopy(records))

    def add(self, category: str, record: Union[Record, ResourceBase]) -> Record:
        """Insert or overwrite a record by id, creating the category if needed."""
        self._check_category(category)
        if isinstance(record, ResourceBase):
            record = record.to_record()
        resource_id = record.get("id")
        if not resource_id:
            raise ResourceValidationError("resource id is required")

        stored = copy.deepcopy(dict(record))
        stored["id"] = str(resource_id)
        stored["category"] = category
        now = utc_now_iso()
        if not stored.get("createdAt"):
            stored["createdAt"] = now
        if not stored.get("updatedAt"):
            stored["updatedAt"] = now

        with self.lock:
            collection = self._collections.setdefault(category, ResourceCollection())
            collection.records()[stored["id"]] = stored
        return copy.deepcopy(stored)

    def update(self, category: str, resource_id: str, partial: Dict[str, Any]) -> Record:
        """Shallow-merge ``partial`` over an existing record and stamp ``updatedAt``.

        ``id`` and ``category`` keys in ``partial`` are ignored; use a
        batch ``move`` to change a record's category.
        """
        resource_id = str(resource_id)
        changes = {key: value for key, value in partial.items() if key not in ("id", "category")}
        with self.lock:
            collection = self._collections.get(category)
            records = collection.records() if collection is not None else {}
            existing = records.get(resource_id)
            if existing is None:
                raise ResourceNotFoundError(category, resource_id)
            merged = {**existing, **copy.deepcopy(changes)}
            merged["category"] = category
            merged["updatedAt"] = utc_now_iso()
            records[resource_id] = merged
            return copy.deepcopy(merged)

    def delete(self, category: str, resource_id: str) -> bool:
        with self.lock:
            collection = self._collections.get(category)
            if collection is None:
                return False
            return collection.records().pop(str(resource_id), None) is not None
