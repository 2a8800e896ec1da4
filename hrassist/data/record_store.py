"""
Record Store

Authoritative fetch of typed records from a backing source. The store never
caches and never filters; everything above it is shielded behind the
Tiered Cache.

Backends:
- JsonRecordStore: one ``<collection>.json`` file per collection, the list
  wrapped under the collection name (``{"employees": [...]}``)
- InMemoryRecordStore: rows held in a dict, for embedding and tests
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..common.errors import DataLoadError
from ..common.schemas.records import Collection, parse_record

logger = logging.getLogger("hrassist.data.record_store")


class RecordStore(ABC):
    """Base class for record sources"""

    @abstractmethod
    async def load_all(self, collection: Collection) -> List[Dict[str, Any]]:
        """
        Load raw rows for a collection.

        Raises:
            DataLoadError: if the source is unreadable or malformed
        """

    async def get_all(self, collection: Union[Collection, str]) -> list:
        """
        Load and validate every record of a collection.

        Raises:
            DataLoadError: if the source is unreadable or a row is invalid
        """
        collection = Collection(collection)
        rows = await self.load_all(collection)
        try:
            return [parse_record(collection, row) for row in rows]
        except ValidationError as e:
            raise DataLoadError(
                f"Malformed record in {collection.value}: {e.error_count()} validation error(s)",
                record_kind=collection.value,
            ) from e


class JsonRecordStore(RecordStore):
    """Reads collections from JSON files in a data directory"""

    def __init__(self, data_dir: Union[str, Path]):
        self._data_dir = Path(data_dir)

    def path_for(self, collection: Collection) -> Path:
        return self._data_dir / f"{Collection(collection).value}.json"

    async def load_all(self, collection: Collection) -> List[Dict[str, Any]]:
        collection = Collection(collection)
        path = self.path_for(collection)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load data from %s: %s", path, e)
            raise DataLoadError(
                f"Failed to load data from {path.name}",
                key=str(path),
                record_kind=collection.value,
            ) from e

        rows = data.get(collection.value) if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise DataLoadError(
                f"{path.name} has no '{collection.value}' list",
                key=str(path),
                record_kind=collection.value,
            )
        logger.debug("Loaded %d rows from %s", len(rows), path.name)
        return rows


class InMemoryRecordStore(RecordStore):
    """
    Serves collections from memory.

    ``load_counts`` records how many times each collection was read, which
    makes upstream traffic observable.
    """

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._collections: Dict[Collection, List[Dict[str, Any]]] = {}
        for name, rows in (collections or {}).items():
            self._collections[Collection(name)] = list(rows)
        self._failures: Dict[Collection, Exception] = {}
        self.load_counts: Counter = Counter()

    def put(self, collection: Union[Collection, str], rows: List[Dict[str, Any]]) -> None:
        """Replace the rows of a collection"""
        self._collections[Collection(collection)] = list(rows)

    def fail(self, collection: Union[Collection, str], error: Optional[Exception] = None) -> None:
        """Make the next loads of a collection fail until ``recover`` is called"""
        collection = Collection(collection)
        self._failures[collection] = error or OSError(f"{collection.value} unavailable")

    def recover(self, collection: Union[Collection, str]) -> None:
        self._failures.pop(Collection(collection), None)

    async def load_all(self, collection: Collection) -> List[Dict[str, Any]]:
        collection = Collection(collection)
        self.load_counts[collection.value] += 1
        error = self._failures.get(collection)
        if error is not None:
            raise DataLoadError(
                f"Failed to load data from {collection.value}",
                record_kind=collection.value,
            ) from error
        return [dict(row) for row in self._collections.get(collection, [])]
