from typing import Any

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from app.database.connection import get_connection
from app.database.exceptions import RecordNotFoundError, RecordStoreError
from app.database.record_store import BaseRecordStore


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


class PostgresRecordStore(BaseRecordStore):
    """Record store backed by PostgreSQL tables named after entity types.

    Tables must have a ``uuid`` primary key ``id`` defaulting to
    ``gen_random_uuid()`` and ``created_at``/``updated_at`` timestamps.
    """

    async def get(self, entity_type: str, record_id: str) -> dict[str, Any]:
        query = sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(entity_type))
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, (record_id,))
                row = await cur.fetchone()

        if row is None:
            raise RecordNotFoundError(f"{entity_type} {record_id} not found")
        row["id"] = str(row["id"])
        return row

    async def update(self, entity_type: str, record_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in fields
        )
        query = sql.SQL("UPDATE {} SET {}, updated_at = NOW() WHERE id = %s").format(
            sql.Identifier(entity_type), assignments
        )
        params = [_adapt(value) for value in fields.values()]
        params.append(record_id)
        async with get_connection() as conn:
            cur = await conn.execute(query, params)
            updated = cur.rowcount
            await conn.commit()

        if updated == 0:
            raise RecordNotFoundError(f"{entity_type} {record_id} not found")

    async def insert(self, entity_type: str, fields: dict[str, Any]) -> dict[str, Any]:
        columns = sql.SQL(", ").join(sql.Identifier(column) for column in fields)
        placeholders = sql.SQL(", ").join(sql.Placeholder() for _ in fields)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(entity_type), columns, placeholders
        )
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, [_adapt(value) for value in fields.values()])
                row = await cur.fetchone()
            await conn.commit()

        if row is None:
            raise RecordStoreError(f"{entity_type} insert returned no row")
        row["id"] = str(row["id"])
        return row

    async def find(self, entity_type: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(entity_type))
        if filters:
            conditions = sql.SQL(" AND ").join(
                sql.SQL("{} = %s").format(sql.Identifier(column)) for column in filters
            )
            query = sql.SQL("{} WHERE {}").format(query, conditions)
        query = sql.SQL("{} ORDER BY created_at").format(query)
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, [_adapt(value) for value in filters.values()])
                rows = await cur.fetchall()

        for row in rows:
            row["id"] = str(row["id"])
        return rows
