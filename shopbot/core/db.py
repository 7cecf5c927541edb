"""
Async Postgres connection pool shared by the catalog and the checkpoint store.

The pool is created by the application lifespan and handed to the stores
through AgentServices; nothing here is a module-level singleton.

psycopg3 (psycopg) API — uses cursor.fetchone(), not fetchrow().

Usage:
    pool = create_pool(settings)
    await pool.open()
    async with pool.connection() as conn:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute("SELECT count(*) AS n FROM items")
            row = await cur.fetchone()
"""

from psycopg_pool import AsyncConnectionPool

from shopbot.core.config import Settings


def create_pool(settings: Settings) -> AsyncConnectionPool:
    """Build an unopened pool. Call `await pool.open()` before use."""
    return AsyncConnectionPool(
        conninfo=settings.database_url,
        max_size=20,
        kwargs={"autocommit": True},
        open=False,
    )


async def ping(pool: AsyncConnectionPool) -> None:
    async with pool.connection() as conn:
        await conn.execute("SELECT 1")
