"""Local storage adapter for finished debates."""

from __future__ import annotations

import sqlite3

from taxdebate.core.debate_session.errors import PersistenceError
from taxdebate.db import DebateRecord, DebateRepository


class SqliteDebateStore:
    """DebateStorePort over the SQLite repository."""

    def __init__(self, repository: DebateRepository):
        self._repository = repository

    async def save(self, record: DebateRecord) -> str:
        try:
            saved = self._repository.add(record)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to store debate: {e}") from e
        return saved.id or ""
