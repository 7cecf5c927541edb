"""
Catalog stores — the three queries the lookup tool needs:

  count()                        cheap emptiness check
  vector_search(vector, limit)   nearest items by cosine similarity, best first
  keyword_search(query, limit)   case-insensitive literal substring match over
                                 item_name, item_description, categories,
                                 embedding_text

Results are plain dicts (Item.record()); semantic hits also carry `score`.
Items without an embedding are invisible to vector search, which is why it
can come back empty on a non-empty catalog.
"""

import math
from typing import Any, Protocol, Sequence

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from shopbot.catalog.models import Item
from shopbot.core.logging import get_logger

log = get_logger(__name__)

_ITEM_COLUMNS = (
    "item_id",
    "item_name",
    "item_description",
    "brand",
    "manufacturer_address",
    "prices",
    "categories",
    "user_reviews",
    "notes",
    "embedding_text",
)


class CatalogStore(Protocol):
    async def count(self) -> int: ...

    async def vector_search(self, vector: Sequence[float], limit: int) -> list[dict[str, Any]]: ...

    async def keyword_search(self, query: str, limit: int) -> list[dict[str, Any]]: ...


# ── Postgres + pgvector ───────────────────────────────────────────────────────

class PostgresCatalog:
    def __init__(self, pool: AsyncConnectionPool, table: str = "items") -> None:
        self._pool = pool
        self._table = sql.Identifier(table)
        self._columns = sql.SQL(", ").join(sql.Identifier(c) for c in _ITEM_COLUMNS)

    async def count(self) -> int:
        query = sql.SQL("SELECT count(*) AS n FROM {}").format(self._table)
        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query)
                row = await cur.fetchone()
        return int(row["n"]) if row else 0

    async def vector_search(self, vector: Sequence[float], limit: int) -> list[dict[str, Any]]:
        query = sql.SQL(
            """
            SELECT {columns},
                   1 - (embedding <=> %(vec)s::vector) AS score
            FROM   {table}
            WHERE  embedding IS NOT NULL
            ORDER  BY embedding <=> %(vec)s::vector
            LIMIT  %(limit)s
            """
        ).format(columns=self._columns, table=self._table)

        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, {"vec": _vec_literal(vector), "limit": limit})
                rows = await cur.fetchall()

        results = []
        for row in rows:
            score = float(row.pop("score"))
            results.append({**Item.model_validate(row).record(), "score": score})
        return results

    async def keyword_search(self, query: str, limit: int) -> list[dict[str, Any]]:
        stmt = sql.SQL(
            """
            SELECT {columns}
            FROM   {table}
            WHERE  item_name ILIKE %(pattern)s
               OR  item_description ILIKE %(pattern)s
               OR  EXISTS (SELECT 1 FROM unnest(categories) AS c WHERE c ILIKE %(pattern)s)
               OR  embedding_text ILIKE %(pattern)s
            LIMIT  %(limit)s
            """
        ).format(columns=self._columns, table=self._table)

        async with self._pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(stmt, {"pattern": like_pattern(query), "limit": limit})
                rows = await cur.fetchall()

        return [Item.model_validate(row).record() for row in rows]


# ── In-memory ─────────────────────────────────────────────────────────────────

class InMemoryCatalog:
    """List-backed catalog with the same search semantics as PostgresCatalog."""

    def __init__(self) -> None:
        self._entries: list[tuple[Item, list[float] | None]] = []

    def add(self, item: Item, embedding: Sequence[float] | None = None) -> None:
        self._entries.append((item, list(embedding) if embedding is not None else None))

    async def count(self) -> int:
        return len(self._entries)

    async def vector_search(self, vector: Sequence[float], limit: int) -> list[dict[str, Any]]:
        scored = [
            (cosine_similarity(vector, embedding), item)
            for item, embedding in self._entries
            if embedding is not None
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [{**item.record(), "score": score} for score, item in scored[:limit]]

    async def keyword_search(self, query: str, limit: int) -> list[dict[str, Any]]:
        needle = query.lower()
        matches = [item.record() for item, _ in self._entries if _matches(item, needle)]
        return matches[:limit]


# ── Helpers ───────────────────────────────────────────────────────────────────

def _matches(item: Item, needle: str) -> bool:
    haystacks = [item.item_name, item.item_description, item.embedding_text, *item.categories]
    return any(needle in text.lower() for text in haystacks)


def like_pattern(query: str) -> str:
    """Wrap `query` for ILIKE, escaping wildcards so it matches literally."""
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"vector length mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def _vec_literal(v: Sequence[float]) -> str:
    """Convert a float list to a Postgres vector literal string."""
    return "[" + ",".join(str(x) for x in v) + "]"
