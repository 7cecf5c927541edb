"""
Entry point: one user turn on one conversation thread.

    call_agent(services, query, thread_id)
      → load the thread's checkpoint (or start empty)
      → append the user's message
      → run the shop agent graph to DONE
      → return the final assistant message as text

Every failure leaves here as AgentFailed carrying one of three stable
user-facing messages (rate limited / authentication / generic).

Persistence is best-effort: if the checkpoint store fails, the answer for the
current call is still returned and the failure is logged. If the prior
history cannot be loaded, the run proceeds on the new message alone and
nothing is saved, so the stored history is never overwritten with a
truncated one.
"""

import asyncio
import json
import secrets
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage
from psycopg_pool import AsyncConnectionPool

from shopbot.agents.lookup import HybridLookup
from shopbot.agents.shop_agent import ShopAgentGraph
from shopbot.agents.tools import build_registry
from shopbot.catalog.embeddings import Embedder, LiteLLMEmbedder
from shopbot.catalog.store import CatalogStore, PostgresCatalog
from shopbot.core.checkpointer import CheckpointStore, PostgresCheckpointStore
from shopbot.core.config import Settings
from shopbot.core.errors import AgentFailed, PersistenceFailure, classify
from shopbot.core.graph_state import ConversationState
from shopbot.core.llm import get_chat_model
from shopbot.core.logging import get_logger

log = get_logger(__name__)


@dataclass
class AgentServices:
    """Everything a run needs, passed explicitly instead of held in module globals."""

    settings: Settings
    chat_model: BaseChatModel
    catalog: CatalogStore
    embedder: Embedder
    checkpointer: CheckpointStore
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_pool(cls, settings: Settings, pool: AsyncConnectionPool) -> "AgentServices":
        return cls(
            settings=settings,
            chat_model=get_chat_model(settings),
            catalog=PostgresCatalog(pool, table=settings.catalog_table),
            embedder=LiteLLMEmbedder(settings),
            checkpointer=PostgresCheckpointStore(pool),
        )

    def build_graph(self) -> ShopAgentGraph:
        lookup = HybridLookup(
            self.catalog,
            self.embedder,
            default_limit=self.settings.lookup_default_limit,
        )
        return ShopAgentGraph(
            self.chat_model,
            build_registry(lookup),
            self.checkpointer,
            policy=self.settings.retry_policy,
            recursion_limit=self.settings.recursion_limit,
            sleep=self.sleep,
        )


def new_thread_id() -> str:
    """Time-derived opaque thread id: epoch milliseconds plus a random suffix."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}"


async def call_agent(services: AgentServices, query: str, thread_id: str) -> str:
    """
    Run one user turn and return the assistant's answer.

    Raises:
        AgentFailed: with kind RATE_LIMITED, UNAUTHENTICATED or GENERIC.
    """
    with structlog.contextvars.bound_contextvars(thread_id=thread_id):
        try:
            prior, persist = await _load(services.checkpointer, thread_id)
            state = (prior or ConversationState()).append(HumanMessage(content=query))
            log.info("agent_invoke", resumed=prior is not None, history=len(state) - 1)

            result = await services.build_graph().run(thread_id, state, persist=persist)
        except Exception as exc:
            kind = classify(exc)
            log.error("agent_failed", error_kind=kind.value, error=str(exc), error_type=type(exc).__name__)
            raise AgentFailed(kind) from exc

        if not result.persisted:
            log.warning("agent_result_not_persisted", steps=result.generation_steps)

        response = message_text(result.state.last)
        log.info("agent_response", steps=result.generation_steps, response_length=len(response))
        return response


async def _load(checkpointer: CheckpointStore, thread_id: str) -> tuple[ConversationState | None, bool]:
    try:
        return await checkpointer.load(thread_id), True
    except PersistenceFailure as exc:
        log.error("checkpoint_load_failed", error=str(exc))
        return None, False


def message_text(message: BaseMessage | None) -> str:
    """Textual content of a message; content blocks are flattened, anything else JSON-encoded."""
    if message is None:
        return ""
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
        else:
            parts.append(json.dumps(block, default=str))
    return "".join(parts)
