import asyncio
import copy
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from app.database.exceptions import RecordNotFoundError


class BaseRecordStore(ABC):
    """Per-id CRUD over named entity types.

    Authorization and tenant isolation are the store's responsibility;
    callers trust whatever record they are handed.
    """

    @abstractmethod
    async def get(self, entity_type: str, record_id: str) -> dict[str, Any]:
        """Return the record with *record_id*.

        Raises:
            RecordNotFoundError: if it does not exist.
        """

    @abstractmethod
    async def update(self, entity_type: str, record_id: str, fields: dict[str, Any]) -> None:
        """Apply *fields* to the record with *record_id*.

        Raises:
            RecordNotFoundError: if it does not exist.
        """

    @abstractmethod
    async def insert(self, entity_type: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Insert a new record and return it including its generated ``id``."""

    @abstractmethod
    async def find(self, entity_type: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Return every record whose fields equal *filters*, oldest first."""


class InMemoryRecordStore(BaseRecordStore):
    """Process-local store for tests and single-process runs.

    Every update is also appended to ``history`` so tests can observe the
    order in which state transitions became visible.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self.history: list[tuple[str, str, dict[str, Any]]] = []

    async def get(self, entity_type: str, record_id: str) -> dict[str, Any]:
        async with self._lock:
            record = self._tables.get(entity_type, {}).get(record_id)
            if record is None:
                raise RecordNotFoundError(f"{entity_type} {record_id} not found")
            return copy.deepcopy(record)

    async def update(self, entity_type: str, record_id: str, fields: dict[str, Any]) -> None:
        async with self._lock:
            record = self._tables.get(entity_type, {}).get(record_id)
            if record is None:
                raise RecordNotFoundError(f"{entity_type} {record_id} not found")
            record.update(copy.deepcopy(fields))
            record["updated_at"] = datetime.now(timezone.utc)
            self.history.append((entity_type, record_id, copy.deepcopy(fields)))

    async def insert(self, entity_type: str, fields: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            now = datetime.now(timezone.utc)
            record = {
                **copy.deepcopy(fields),
                "id": str(uuid.uuid4()),
                "created_at": now,
                "updated_at": now,
            }
            self._tables.setdefault(entity_type, {})[record["id"]] = record
            return copy.deepcopy(record)

    async def find(self, entity_type: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        async with self._lock:
            matches = [
                record
                for record in self._tables.get(entity_type, {}).values()
                if all(record.get(column) == value for column, value in filters.items())
            ]
            matches.sort(key=lambda record: record["created_at"])
            return copy.deepcopy(matches)
