"""
Shop agent graph: an explicit state machine over two nodes.

    AWAITING_GENERATION ──generate──▶ AWAITING_TOOL_EXECUTION  (tool calls present)
            ▲                    └──▶ DONE                     (no tool calls)
            └──────execute_tools────── AWAITING_TOOL_EXECUTION

run() interprets the machine until DONE. The conversation state is
checkpointed ("running") whenever it ends on an answered message: after a
tool step, a generation and its tool results are saved together. The final
answer is saved as "done". A step that raises or is cancelled is never
applied, so the store never holds a tool call without its result.

Generation entries are bounded by `recursion_limit`; a model that keeps
asking for tools ends the run with RecursionLimitExceeded.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage

from shopbot.agents.nodes import Phase, execute_tools, generate, next_phase
from shopbot.agents.tools import ToolRegistry
from shopbot.core.checkpointer import STATUS_DONE, STATUS_RUNNING, CheckpointStore
from shopbot.core.errors import PersistenceFailure, RecursionLimitExceeded
from shopbot.core.graph_state import ConversationState
from shopbot.core.logging import get_logger
from shopbot.core.retry import RetryPolicy

log = get_logger(__name__)

DEFAULT_RECURSION_LIMIT = 15


@dataclass(frozen=True)
class RunResult:
    state: ConversationState
    generation_steps: int
    persisted: bool = True


class ShopAgentGraph:
    def __init__(
        self,
        model: BaseChatModel,
        registry: ToolRegistry,
        checkpointer: CheckpointStore,
        *,
        policy: RetryPolicy | None = None,
        recursion_limit: int = DEFAULT_RECURSION_LIMIT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if recursion_limit < 1:
            raise ValueError("recursion_limit must be >= 1")
        self.model = model
        self.registry = registry
        self.checkpointer = checkpointer
        self.policy = policy or RetryPolicy()
        self.recursion_limit = recursion_limit
        self._sleep = sleep

    async def step(self, phase: Phase, state: ConversationState) -> tuple[Phase, ConversationState]:
        """Apply one transition and return the next phase with the extended state."""
        if phase is Phase.AWAITING_GENERATION:
            message = await generate(state, self.model, self.registry, self.policy, sleep=self._sleep)
            return next_phase(message), state.append(message)

        if phase is Phase.AWAITING_TOOL_EXECUTION:
            pending = state.last
            if not isinstance(pending, AIMessage) or not pending.tool_calls:
                raise RuntimeError("tool execution entered without pending tool calls")
            tool_messages = await execute_tools(pending, self.registry)
            return Phase.AWAITING_GENERATION, state.append(*tool_messages)

        raise ValueError(f"no transition out of {phase}")

    async def run(
        self,
        thread_id: str,
        state: ConversationState,
        *,
        persist: bool = True,
    ) -> RunResult:
        """
        Drive the machine from AWAITING_GENERATION to DONE.

        Args:
            thread_id: Checkpoint key.
            state:     History including the new user message.
            persist:   Set False to skip checkpointing entirely (e.g. when the
                       prior history could not be loaded and must not be
                       overwritten).
        """
        phase = Phase.AWAITING_GENERATION
        generations = 0
        persisted = persist

        while phase is not Phase.DONE:
            if phase is Phase.AWAITING_GENERATION:
                if generations >= self.recursion_limit:
                    log.error("recursion_limit_exceeded", thread_id=thread_id, limit=self.recursion_limit)
                    raise RecursionLimitExceeded(self.recursion_limit)
                generations += 1

            phase, state = await self.step(phase, state)
            log.info("transition", thread_id=thread_id, phase=phase.value, step=generations, messages=len(state))

            # tool calls are only saved together with their results
            if persist and phase is not Phase.AWAITING_TOOL_EXECUTION:
                status = STATUS_DONE if phase is Phase.DONE else STATUS_RUNNING
                persisted = await self._checkpoint(thread_id, state, generations, status) and persisted

        return RunResult(state=state, generation_steps=generations, persisted=persisted)

    async def _checkpoint(self, thread_id: str, state: ConversationState, step: int, status: str) -> bool:
        """Best-effort save. A failure is logged and reported, never raised."""
        try:
            await self.checkpointer.save(thread_id, state, step=step, status=status)
        except PersistenceFailure as exc:
            log.error("checkpoint_save_failed", thread_id=thread_id, step=step, status=status, error=str(exc))
            return False
        return True
