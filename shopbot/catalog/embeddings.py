"""
Query embeddings for semantic catalog search.

Routing follows LITELLM_MODE like the chat model:
  proxy   → POST {litellm_base_url}/embeddings over httpx
  library → litellm.aembedding in-process

Failures propagate; the lookup tool is responsible for turning them into a
failure envelope.
"""

from typing import Protocol

import httpx

from shopbot.core.config import Settings
from shopbot.core.logging import get_logger

log = get_logger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class EmbeddingDimensionError(ValueError):
    pass


class LiteLLMEmbedder:
    def __init__(self, settings: Settings, *, timeout: float = 30) -> None:
        self._settings = settings
        self._timeout = timeout

    async def embed(self, text: str) -> list[float]:
        settings = self._settings
        if settings.litellm_mode == "library":
            import litellm

            response = await litellm.aembedding(
                model=settings.embedding_model,
                input=[text],
            )
            first = response.data[0]
            vector = list(first["embedding"] if isinstance(first, dict) else first.embedding)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    f"{settings.litellm_base_url}/embeddings",
                    headers={"Authorization": f"Bearer {settings.litellm_master_key}"},
                    json={"model": settings.embedding_model, "input": text},
                    timeout=self._timeout,
                )
                resp.raise_for_status()
                vector = resp.json()["data"][0]["embedding"]

        if len(vector) != settings.embedding_dim:
            raise EmbeddingDimensionError(
                f"{settings.embedding_model} returned {len(vector)} dimensions, "
                f"expected {settings.embedding_dim}"
            )
        log.debug("query_embedded", model=settings.embedding_model, dim=len(vector))
        return vector
