import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.database.exceptions import RecordStoreError
from app.database.postgres_record_store import PostgresRecordStore
from app.ratelimit.postgres import PostgresRateLimiter


def _connection_returning(row: object) -> Any:
    cursor = MagicMock()
    cursor.execute = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=row)
    cursor.__aenter__ = AsyncMock(return_value=cursor)
    cursor.__aexit__ = AsyncMock(return_value=None)
    conn = MagicMock()
    conn.cursor.return_value = cursor
    conn.commit = AsyncMock()

    @asynccontextmanager
    async def _get_connection() -> AsyncIterator[MagicMock]:
        yield conn

    return _get_connection


class TestMissingReturnedRow:
    def test_record_store_insert_raises_store_error(self) -> None:
        with patch(
            "app.database.postgres_record_store.get_connection", _connection_returning(None)
        ):
            with pytest.raises(RecordStoreError, match="insert returned no row"):
                asyncio.run(PostgresRecordStore().insert("sections", {"name": "A"}))

    def test_rate_limiter_raises_store_error(self) -> None:
        with patch("app.ratelimit.postgres.get_connection", _connection_returning(None)):
            with pytest.raises(RecordStoreError, match="returned no row"):
                asyncio.run(PostgresRateLimiter(5, 60).check("generation:u1"))
