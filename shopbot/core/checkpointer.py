"""
Checkpoint stores — persist a conversation's messages keyed by thread id.

Both implementations are last-writer-wins per thread. Concurrent runs on the
same thread id are not serialized here; callers must not resume one thread
from two places at once.

Each record carries a status: "running" while a run is still transitioning,
"done" once the run reached its final answer. A run that is cancelled or
fails between steps keeps its last fully-applied step as "running".
"""

from dataclasses import dataclass
from typing import Any, Protocol

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from shopbot.core.errors import PersistenceFailure
from shopbot.core.graph_state import ConversationState
from shopbot.core.logging import get_logger

log = get_logger(__name__)

STATUS_RUNNING = "running"
STATUS_DONE = "done"


@dataclass(frozen=True)
class CheckpointRecord:
    messages: list[dict[str, Any]]
    step: int
    status: str


class CheckpointStore(Protocol):
    async def load(self, thread_id: str) -> ConversationState | None: ...

    async def save(
        self,
        thread_id: str,
        state: ConversationState,
        *,
        step: int = 0,
        status: str = STATUS_DONE,
    ) -> None: ...


class InMemoryCheckpointStore:
    """Dict-backed store. Payloads are serialized on save, so callers never share message objects."""

    def __init__(self) -> None:
        self.records: dict[str, CheckpointRecord] = {}

    async def load(self, thread_id: str) -> ConversationState | None:
        record = self.records.get(thread_id)
        if record is None:
            return None
        return ConversationState.from_dict(record.messages)

    async def save(
        self,
        thread_id: str,
        state: ConversationState,
        *,
        step: int = 0,
        status: str = STATUS_DONE,
    ) -> None:
        self.records[thread_id] = CheckpointRecord(state.to_dict(), step, status)


class PostgresCheckpointStore:
    """
    One row per thread in the `checkpoints` table (see alembic 001).
    The full message list is stored as JSONB and replaced on every save.
    """

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def load(self, thread_id: str) -> ConversationState | None:
        try:
            async with self._pool.connection() as conn:
                async with conn.cursor(row_factory=dict_row) as cur:
                    await cur.execute(
                        "SELECT messages FROM checkpoints WHERE thread_id = %s",
                        (thread_id,),
                    )
                    row = await cur.fetchone()
        except Exception as exc:
            raise PersistenceFailure(thread_id, "load", exc) from exc

        if row is None:
            return None
        return ConversationState.from_dict(row["messages"])

    async def save(
        self,
        thread_id: str,
        state: ConversationState,
        *,
        step: int = 0,
        status: str = STATUS_DONE,
    ) -> None:
        try:
            async with self._pool.connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO checkpoints (thread_id, messages, step, status, updated_at)
                    VALUES (%s, %s, %s, %s, now())
                    ON CONFLICT (thread_id)
                    DO UPDATE SET
                        messages   = EXCLUDED.messages,
                        step       = EXCLUDED.step,
                        status     = EXCLUDED.status,
                        updated_at = now()
                    """,
                    (thread_id, Jsonb(state.to_dict()), step, status),
                )
        except Exception as exc:
            raise PersistenceFailure(thread_id, "save", exc) from exc

        log.debug("checkpoint_saved", thread_id=thread_id, step=step, status=status, messages=len(state))
