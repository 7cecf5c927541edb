"""Tests for the generation step, the transition function and the shop agent graph."""

import asyncio
import json
from datetime import datetime, timezone

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from conftest import ScriptedChatModel, UpstreamError, lookup_call, tool_request
from shopbot.agents.nodes import Phase, execute_tools, generate, next_phase
from shopbot.agents.lookup import HybridLookup
from shopbot.agents.shop_agent import ShopAgentGraph
from shopbot.agents.tools import ItemLookupArgs, ToolSpec, build_registry
from shopbot.core.checkpointer import STATUS_DONE, STATUS_RUNNING, InMemoryCheckpointStore
from shopbot.core.errors import PersistenceFailure, RecursionLimitExceeded, RetriesExhausted, UnknownTool
from shopbot.core.graph_state import ConversationState
from shopbot.core.retry import RetryPolicy


def question(text: str = "Do you have an oak table?") -> ConversationState:
    return ConversationState.of([HumanMessage(content=text)])


class RecordingStore(InMemoryCheckpointStore):
    def __init__(self) -> None:
        super().__init__()
        self.history: list[tuple[int, str, int]] = []

    async def save(self, thread_id, state, *, step=0, status=STATUS_DONE):
        await super().save(thread_id, state, step=step, status=status)
        self.history.append((step, status, len(state)))


class FailingStore(InMemoryCheckpointStore):
    async def save(self, thread_id, state, *, step=0, status=STATUS_DONE):
        raise PersistenceFailure(thread_id, "save", OSError("disk full"))


@pytest.fixture
def graph_factory(registry, fake_sleep):
    def _build(model, store=None, **kwargs):
        return ShopAgentGraph(
            model,
            registry,
            store if store is not None else InMemoryCheckpointStore(),
            sleep=fake_sleep,
            **kwargs,
        )

    return _build


class TestNextPhase:
    def test_tool_calls_route_to_tool_execution(self):
        assert next_phase(tool_request(lookup_call("oak"))) is Phase.AWAITING_TOOL_EXECUTION

    def test_plain_answer_routes_to_done(self):
        assert next_phase(AIMessage(content="All done")) is Phase.DONE

    def test_non_assistant_message_routes_to_done(self):
        assert next_phase(HumanMessage(content="hi")) is Phase.DONE


class TestGenerate:
    async def test_prompt_has_directive_time_and_history(self, registry, fake_sleep):
        model = ScriptedChatModel(responses=[AIMessage(content="Hello!")])
        fixed = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        message = await generate(question(), model, registry, RetryPolicy(), now=lambda: fixed, sleep=fake_sleep)

        assert message.content == "Hello!"
        assert model.bound_tools == ["item_lookup"]
        (prompt,) = model.calls
        assert isinstance(prompt[0], SystemMessage)
        assert "furniture store" in prompt[0].content
        assert "ALWAYS use this tool" in prompt[0].content
        assert "Current time: 2026-01-02T03:04:05+00:00" in prompt[0].content
        assert prompt[1].content == "Do you have an oak table?"

    async def test_rate_limited_generation_is_retried(self, registry, fake_sleep, sleeps):
        model = ScriptedChatModel(responses=[UpstreamError(429), AIMessage(content="Hi")])

        message = await generate(question(), model, registry, RetryPolicy(), sleep=fake_sleep)

        assert message.content == "Hi"
        assert len(model.calls) == 2
        assert sleeps == [2.0]

    async def test_unauthenticated_generation_is_not_retried(self, registry, fake_sleep, sleeps):
        model = ScriptedChatModel(responses=[UpstreamError(401)])

        with pytest.raises(UpstreamError):
            await generate(question(), model, registry, RetryPolicy(), sleep=fake_sleep)

        assert len(model.calls) == 1
        assert sleeps == []


class TestExecuteTools:
    async def test_one_result_per_call_in_order(self, registry):
        request = tool_request(
            lookup_call("sofa", call_id="call_1"),
            lookup_call("oak table", call_id="call_2"),
            lookup_call("wardrobe", call_id="call_3"),
        )

        results = await execute_tools(request, registry)

        assert [m.tool_call_id for m in results] == ["call_1", "call_2", "call_3"]
        assert [json.loads(m.content)["query"] for m in results] == ["sofa", "oak table", "wardrobe"]


class TestShopAgentGraph:
    async def test_direct_answer_finishes_after_one_generation(self, graph_factory):
        model = ScriptedChatModel(responses=[AIMessage(content="Hello! How can I help?")])
        start = question("hello")

        result = await graph_factory(model).run("t1", start)

        assert result.generation_steps == 1
        assert len(result.state) == len(start) + 1
        assert result.state.messages[: len(start)] == start.messages
        assert result.state.last.content == "Hello! How can I help?"

    async def test_tool_round_appends_call_and_result(self, graph_factory):
        model = ScriptedChatModel(
            responses=[
                tool_request(lookup_call("oak table")),
                AIMessage(content="We have the Oak Table."),
            ]
        )

        result = await graph_factory(model).run("t1", question())

        kinds = [type(m) for m in result.state.messages]
        assert kinds == [HumanMessage, AIMessage, ToolMessage, AIMessage]
        assert result.state.messages[2].tool_call_id == "call_1"
        assert result.generation_steps == 2
        # second generation saw the tool result
        assert isinstance(model.calls[1][-1], ToolMessage)

    async def test_tool_calls_are_saved_with_their_results(self, graph_factory):
        store = RecordingStore()
        model = ScriptedChatModel(
            responses=[tool_request(lookup_call("oak table")), AIMessage(content="Found it.")]
        )

        await graph_factory(model, store).run("t1", question())

        assert store.history == [
            (1, STATUS_RUNNING, 3),
            (2, STATUS_DONE, 4),
        ]

    async def test_recursion_limit_stops_runaway_tool_loop(self, graph_factory):
        store = RecordingStore()
        model = ScriptedChatModel(repeat=tool_request(lookup_call("oak table")))

        with pytest.raises(RecursionLimitExceeded) as excinfo:
            await graph_factory(model, store, recursion_limit=4).run("t1", question())

        assert excinfo.value.limit == 4
        assert len(model.calls) == 4
        assert all(status == STATUS_RUNNING for _, status, _ in store.history)

    async def test_failed_step_is_not_checkpointed(self, graph_factory):
        store = RecordingStore()
        model = ScriptedChatModel(responses=[tool_request(lookup_call("oak table")), UpstreamError(401)])

        with pytest.raises(UpstreamError):
            await graph_factory(model, store).run("t1", question())

        record = store.records["t1"]
        assert record.status == STATUS_RUNNING
        assert len(record.messages) == 3

    async def test_exhausted_retries_propagate(self, graph_factory):
        model = ScriptedChatModel(repeat=None, responses=[UpstreamError(429)] * 3)

        with pytest.raises(RetriesExhausted):
            await graph_factory(model).run("t1", question())

    async def test_unknown_tool_fails_the_run_without_saving_the_call(self, graph_factory):
        store = RecordingStore()
        bad = AIMessage(content="", tool_calls=[{"name": "refund", "args": {}, "id": "c1", "type": "tool_call"}])
        model = ScriptedChatModel(responses=[bad])

        with pytest.raises(UnknownTool):
            await graph_factory(model, store).run("t1", question())

        assert store.history == []
        assert await store.load("t1") is None

    async def test_failed_second_tool_step_keeps_first_round(self, graph_factory):
        store = RecordingStore()
        bad = AIMessage(content="", tool_calls=[{"name": "refund", "args": {}, "id": "c2", "type": "tool_call"}])
        model = ScriptedChatModel(responses=[tool_request(lookup_call("oak table")), bad])

        with pytest.raises(UnknownTool):
            await graph_factory(model, store).run("t1", question())

        saved = await store.load("t1")
        assert [type(m) for m in saved.messages] == [HumanMessage, AIMessage, ToolMessage]
        assert store.records["t1"].status == STATUS_RUNNING

    async def test_cancelled_run_keeps_only_whole_steps(self, catalog, embedder, fake_sleep):
        entered = asyncio.Event()
        released = asyncio.Event()

        async def stalled(args):
            entered.set()
            await released.wait()

        registry = build_registry(HybridLookup(catalog, embedder))
        registry.register(ToolSpec("stock_check", "Checks warehouse stock", ItemLookupArgs, stalled))
        stock_call = {"name": "stock_check", "args": {"query": "oak table"}, "id": "call_2", "type": "tool_call"}
        model = ScriptedChatModel(responses=[tool_request(lookup_call("oak table")), tool_request(stock_call)])
        store = RecordingStore()
        graph = ShopAgentGraph(model, registry, store, sleep=fake_sleep)

        task = asyncio.create_task(graph.run("t1", question()))
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert store.history == [(1, STATUS_RUNNING, 3)]
        saved = await store.load("t1")
        assert isinstance(saved.last, ToolMessage)
        assert saved.last.tool_call_id == "call_1"

    async def test_save_failures_do_not_lose_the_answer(self, graph_factory):
        model = ScriptedChatModel(responses=[AIMessage(content="Still here.")])

        result = await graph_factory(model, FailingStore()).run("t1", question())

        assert result.state.last.content == "Still here."
        assert result.persisted is False

    async def test_persist_false_skips_the_store(self, graph_factory):
        store = RecordingStore()
        model = ScriptedChatModel(responses=[AIMessage(content="ok")])

        result = await graph_factory(model, store).run("t1", question(), persist=False)

        assert store.history == []
        assert result.persisted is False

    def test_recursion_limit_must_be_positive(self, registry):
        with pytest.raises(ValueError):
            ShopAgentGraph(ScriptedChatModel(), registry, InMemoryCheckpointStore(), recursion_limit=0)
