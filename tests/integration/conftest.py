import asyncio
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import pytest
from psycopg import sql

from app.config.settings import Settings
from app.database.connection import close_pool, get_connection, init_pool

T = TypeVar("T")

_SCHEMA = Path(__file__).parent / "schema.sql"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "clinote_test")
    return Settings()


async def _prepare_schema(settings: Settings) -> None:
    await init_pool(settings)
    try:
        async with get_connection() as conn:
            await conn.execute(_SCHEMA.read_text(encoding="utf-8"))
            await conn.commit()
    finally:
        await close_pool()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_db(test_settings: Settings) -> Settings:
    try:
        asyncio.run(_prepare_schema(test_settings))
    except Exception as e:
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    return test_settings


@pytest.fixture
def run_with_pool(integration_db: Settings) -> Callable[[Callable[[], Awaitable[T]]], T]:
    """Run a coroutine factory on a fresh loop with the pool open.

    The async pool is bound to the loop that opened it, so every test opens
    and closes its own.
    """

    def _run(factory: Callable[[], Awaitable[Any]]) -> Any:
        async def _wrapped() -> Any:
            await init_pool(integration_db)
            try:
                return await factory()
            finally:
                await close_pool()

        return asyncio.run(_wrapped())

    return _run


@pytest.fixture
def integration_cleanup(run_with_pool: Callable[..., Any]) -> Any:
    cleanup: list[tuple[str, str]] = []
    yield cleanup
    if not cleanup:
        return

    async def _delete() -> None:
        async with get_connection() as conn:
            for table, key in cleanup:
                if table == "rate_limits":
                    await conn.execute("DELETE FROM rate_limits WHERE key = %s", (key,))
            for table, key in cleanup:
                if table in ("clinical_notes", "case_summaries"):
                    await conn.execute(
                        sql.SQL("DELETE FROM {} WHERE id = %s").format(sql.Identifier(table)),
                        (key,),
                    )
            await conn.commit()

    run_with_pool(_delete)
