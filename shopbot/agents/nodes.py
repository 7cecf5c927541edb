"""
Workflow node implementations.

Graph topology:

    START → generate → (next_phase) → DONE
               ↑            ↓ tool_calls present
               └── execute_tools

generate:
    - System directive (role, mandatory tool use, current time) + full history
    - LLM bound with the registry's tools, called through the backoff retrier
    - Returns one AIMessage (text or tool_calls)

next_phase (transition function):
    - AWAITING_TOOL_EXECUTION if the AIMessage carries tool calls
    - DONE otherwise

execute_tools:
    - Dispatches every tool call in order through the ToolRegistry
    - Returns exactly one ToolMessage per call, same order
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from shopbot.agents.tools import ToolRegistry
from shopbot.core.graph_state import ConversationState
from shopbot.core.logging import get_logger
from shopbot.core.retry import RetryPolicy, retry

log = get_logger(__name__)


class Phase(str, Enum):
    AWAITING_GENERATION = "awaiting_generation"
    AWAITING_TOOL_EXECUTION = "awaiting_tool_execution"
    DONE = "done"


SYSTEM_DIRECTIVE = """You are a helpful E-commerce Chatbot Agent for a furniture store.

IMPORTANT: You have access to an item_lookup tool that searches the furniture inventory database. ALWAYS use this tool when customers ask about furniture items, even if the tool returns errors or empty results.

When using the item_lookup tool:
- If it returns results, provide helpful details about the furniture items
- If it returns an error or no results, acknowledge this and offer to help in other ways
- If the database appears to be empty, let the customer know that inventory might be being updated

Current time: {time}"""

PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", SYSTEM_DIRECTIVE),
        MessagesPlaceholder("messages"),
    ]
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── generate ──────────────────────────────────────────────────────────────────

async def generate(
    state: ConversationState,
    model: BaseChatModel,
    registry: ToolRegistry,
    policy: RetryPolicy,
    *,
    now: Callable[[], datetime] = _utcnow,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AIMessage:
    """
    Main reasoning step — LLM with tools bound.
    Returns either:
      - AIMessage with content (final response), or
      - AIMessage with tool_calls (triggers execute_tools)
    """
    llm = model.bind_tools(registry.as_langchain_tools())

    async def _call() -> BaseMessage:
        prompt = await PROMPT.aformat_messages(
            time=now().isoformat(),
            messages=list(state.messages),
        )
        return await llm.ainvoke(prompt)

    response = await retry(_call, policy, sleep=sleep)
    if not isinstance(response, AIMessage):
        response = AIMessage(content=response.content)

    log.debug(
        "agent_response",
        has_tool_calls=bool(response.tool_calls),
        tool_calls=[call["name"] for call in response.tool_calls],
        content_length=len(response.content) if response.content else 0,
    )
    return response


# ── Transition function ───────────────────────────────────────────────────────

def next_phase(message: BaseMessage) -> Phase:
    """Route on the latest assistant message: tools if it asked for any, otherwise done."""
    if isinstance(message, AIMessage) and message.tool_calls:
        return Phase.AWAITING_TOOL_EXECUTION
    return Phase.DONE


# ── execute_tools ─────────────────────────────────────────────────────────────

async def execute_tools(message: AIMessage, registry: ToolRegistry) -> list[ToolMessage]:
    """Answer every pending tool call, one at a time, in the order the model emitted them."""
    results = []
    for call in message.tool_calls:
        log.info("tool_call", tool_name=call["name"], call_id=call["id"])
        results.append(await registry.dispatch(call))
    return results
