"""
Agent tool definitions.

Tools live in a ToolRegistry: name → ToolSpec(args model, async handler).
The registry gives the chat model its tool schemas via bind_tools() and
dispatches the tool calls the model emits. Unknown tool names raise
UnknownTool; arguments that fail validation come back as a failure envelope
so the model can correct itself.

Current tools:
  - item_lookup: hybrid semantic/keyword search over the furniture inventory
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from langchain_core.messages import ToolCall, ToolMessage
from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field, ValidationError

from shopbot.agents.lookup import HybridLookup, LookupFailure, ToolEnvelope
from shopbot.core.errors import UnknownTool
from shopbot.core.logging import get_logger

log = get_logger(__name__)

ITEM_LOOKUP = "item_lookup"


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[BaseModel], Awaitable[ToolEnvelope]]

    def as_langchain_tool(self) -> BaseTool:
        async def _run(**kwargs) -> str:
            envelope = await self.handler(self.args_schema(**kwargs))
            return envelope.to_text()

        return StructuredTool.from_function(
            coroutine=_run,
            name=self.name,
            description=self.description,
            args_schema=self.args_schema,
        )


class ToolRegistry:
    def __init__(self, specs: Iterable[ToolSpec] = ()) -> None:
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f"tool {spec.name!r} is already registered")
        self._specs[spec.name] = spec

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def as_langchain_tools(self) -> list[BaseTool]:
        return [spec.as_langchain_tool() for spec in self._specs.values()]

    async def dispatch(self, call: ToolCall) -> ToolMessage:
        """Run one tool call and wrap its envelope in a ToolMessage answering `call["id"]`."""
        spec = self._specs.get(call["name"])
        if spec is None:
            log.error("unknown_tool", tool_name=call["name"], known=self.names)
            raise UnknownTool(call["name"])

        raw_args = call.get("args") or {}
        try:
            args = spec.args_schema.model_validate(raw_args)
        except ValidationError as exc:
            log.warning("tool_args_invalid", tool_name=spec.name, errors=exc.error_count())
            query = raw_args.get("query")
            envelope: ToolEnvelope = LookupFailure(
                error="Invalid tool arguments",
                details=str(exc),
                query=query if isinstance(query, str) else None,
            )
        else:
            envelope = await spec.handler(args)

        return ToolMessage(content=envelope.to_text(), tool_call_id=call["id"], name=spec.name)


# ── item_lookup ───────────────────────────────────────────────────────────────

class ItemLookupArgs(BaseModel):
    query: str = Field(description="The search query")
    n: int = Field(default=10, description="Number of results to return")


def item_lookup_spec(lookup: HybridLookup) -> ToolSpec:
    async def handler(args: ItemLookupArgs) -> ToolEnvelope:
        return await lookup.lookup(args.query, args.n)

    return ToolSpec(
        name=ITEM_LOOKUP,
        description="Gathers furniture item details from the Inventory database",
        args_schema=ItemLookupArgs,
        handler=handler,
    )


def build_registry(lookup: HybridLookup) -> ToolRegistry:
    """Registry with every tool the shop agent may call."""
    return ToolRegistry([item_lookup_spec(lookup)])
