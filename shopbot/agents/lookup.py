"""
Hybrid inventory lookup — semantic search with a keyword fallback.

    count() == 0        → empty-inventory envelope, no search at all
    vector_search()     → "semantic" results if anything came back
    keyword_search()    → "keyword" results otherwise (zero hits is fine)
    any exception       → failure envelope

The fallback threshold is exactly zero semantic hits; low-scoring hits are
still returned as semantic results.

Every outcome is an envelope that serializes to JSON text, because it goes
back into the conversation as a tool message. Nothing raised by the catalog
or the embedder escapes `lookup`.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shopbot.catalog.embeddings import Embedder
from shopbot.catalog.store import CatalogStore
from shopbot.core.logging import get_logger

log = get_logger(__name__)

SEMANTIC = "semantic"
KEYWORD = "keyword"

EMPTY_INVENTORY_ERROR = "No items found in inventory"
EMPTY_INVENTORY_MESSAGE = "The inventory database appears to be empty"
SEARCH_FAILED_ERROR = "Failed to search inventory"


class ToolEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_text(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class LookupResult(ToolEnvelope):
    results: list[dict[str, Any]]
    search_type: Literal["semantic", "keyword"] = Field(alias="searchType")
    query: str
    count: int

    @model_validator(mode="after")
    def _count_matches_results(self) -> "LookupResult":
        if self.count != len(self.results):
            raise ValueError(f"count={self.count} but {len(self.results)} results")
        return self

    @classmethod
    def of(cls, results: list[dict[str, Any]], search_type: str, query: str) -> "LookupResult":
        return cls(results=results, search_type=search_type, query=query, count=len(results))


class LookupFailure(ToolEnvelope):
    error: str
    details: str | None = None
    message: str | None = None
    query: str | None = None
    count: int | None = None


class HybridLookup:
    def __init__(self, catalog: CatalogStore, embedder: Embedder, default_limit: int = 10) -> None:
        self._catalog = catalog
        self._embedder = embedder
        self._default_limit = default_limit

    async def lookup(self, query: str, limit: int | None = None) -> LookupResult | LookupFailure:
        """
        Search the inventory for `query`.

        Args:
            query: Free text. Treated literally by the keyword fallback.
            limit: Maximum number of results. Values below 1 are clamped to 1.
        """
        limit = clamp_limit(self._default_limit if limit is None else limit)
        log.info("item_lookup", query=query, limit=limit)

        try:
            total = await self._catalog.count()
            if total == 0:
                log.warning("inventory_empty", query=query)
                return LookupFailure(
                    error=EMPTY_INVENTORY_ERROR,
                    message=EMPTY_INVENTORY_MESSAGE,
                    query=query,
                    count=0,
                )

            vector = await self._embedder.embed(query)
            results = await self._catalog.vector_search(vector, limit)
            log.info("lookup_semantic", query=query, count=len(results), total=total)
            if results:
                return LookupResult.of(results, SEMANTIC, query)

            results = await self._catalog.keyword_search(query, limit)
            log.info("lookup_keyword_fallback", query=query, count=len(results))
            return LookupResult.of(results, KEYWORD, query)

        except Exception as exc:
            log.exception("item_lookup_failed", query=query, error_type=type(exc).__name__)
            return LookupFailure(error=SEARCH_FAILED_ERROR, details=str(exc), query=query)


def clamp_limit(limit: int) -> int:
    return max(1, int(limit))
