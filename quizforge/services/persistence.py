"""
QuizForge — Persistence
========================
Row-oriented storage used by bulk import and generation. Tables are
addressed by name and rows are plain dicts.
"""

import copy
import logging
import uuid
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class Persistence(Protocol):
    async def insert(self, table: str, records: List[Row]) -> List[Row]: ...

    async def select(self, table: str, filters: Optional[Row] = None) -> List[Row]: ...


class InMemoryPersistence:
    """
    Process-local tables. Rows without an ``id`` get a generated one.
    Methods never await internally, so each call is atomic on the event loop.
    """

    def __init__(self):
        self._tables: Dict[str, List[Row]] = {}

    async def insert(self, table: str, records: List[Row]) -> List[Row]:
        rows = self._tables.setdefault(table, [])
        stored = []
        for record in records:
            row = copy.deepcopy(record)
            row.setdefault("id", uuid.uuid4().hex)
            rows.append(row)
            stored.append(copy.deepcopy(row))
        logger.debug(f"[STORE] {table}: +{len(stored)} row(s)")
        return stored

    async def select(self, table: str, filters: Optional[Row] = None) -> List[Row]:
        filters = filters or {}
        return [
            copy.deepcopy(row)
            for row in self._tables.get(table, [])
            if all(row.get(key) == value for key, value in filters.items())
        ]

    def count(self, table: str) -> int:
        return len(self._tables.get(table, []))
