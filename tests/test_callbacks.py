from __future__ import annotations

import asyncio
from typing import Any
from uuid import UUID, uuid4

import pytest

from runtrace.callbacks import (
    AsyncCallbackHandler,
    BaseCallbackHandler,
    Capability,
    CallbackManager,
    CallbackManagerForChainRun,
    CallbackManagerForLLMRun,
    CallbackManagerForToolRun,
)
from runtrace.schema import AgentAction, AgentFinish, Generation, LLMResult


class RaisingHandler(BaseCallbackHandler):
    name = "raising_handler"

    def on_chain_start(self, serialized: dict[str, Any], inputs: dict[str, Any], **kwargs: Any) -> None:
        msg = "boom"
        raise RuntimeError(msg)

    def on_llm_new_token(self, token: str, **kwargs: Any) -> None:
        msg = "token boom"
        raise RuntimeError(msg)


class AsyncRaisingHandler(AsyncCallbackHandler):
    name = "async_raising_handler"

    async def on_chain_start(self, serialized: dict[str, Any], inputs: dict[str, Any], **kwargs: Any) -> None:
        await asyncio.sleep(0)
        msg = "async boom"
        raise ValueError(msg)


class RendezvousHandler(AsyncCallbackHandler):
    """Finishes only if its partner handler runs at the same time."""

    def __init__(self, mine: asyncio.Event, other: asyncio.Event) -> None:
        self.mine = mine
        self.other = other
        self.completed = False

    async def on_text(self, text: str, **kwargs: Any) -> None:
        self.mine.set()
        await asyncio.wait_for(self.other.wait(), timeout=1.0)
        self.completed = True


class SlowHandler(AsyncCallbackHandler):
    def __init__(self) -> None:
        self.finished = False

    async def on_chain_end(self, outputs: dict[str, Any], **kwargs: Any) -> None:
        await asyncio.sleep(0.01)
        self.finished = True


def _assert_invariant(manager: CallbackManager) -> None:
    handlers = manager.handlers
    for handler in manager.inheritable_handlers:
        assert any(handler is h for h in handlers)


# === Run start ===


@pytest.mark.asyncio
async def test_chain_start_mints_run_id_and_notifies_handlers(make_recorder) -> None:
    h = make_recorder()
    m = CallbackManager([h])

    run = await m.on_chain_start({"name": "qa"}, {"input": "x"})

    assert isinstance(run, CallbackManagerForChainRun)
    assert isinstance(run.run_id, UUID)
    assert run.parent_run_id is None
    assert h.names == ["on_chain_start"]
    call = h.calls[0]
    assert call.args == ({"name": "qa"}, {"input": "x"})
    assert call.kwargs["run_id"] == run.run_id
    assert call.kwargs["parent_run_id"] is None


@pytest.mark.asyncio
async def test_start_uses_caller_supplied_run_id(make_recorder) -> None:
    h = make_recorder()
    m = CallbackManager([h])
    run_id = uuid4()

    llm_run = await m.on_llm_start({"name": "gpt"}, ["hi"], run_id=run_id)
    tool_run = await m.on_tool_start({"name": "search"}, "query", run_id=run_id)

    assert isinstance(llm_run, CallbackManagerForLLMRun)
    assert isinstance(tool_run, CallbackManagerForToolRun)
    assert llm_run.run_id == run_id
    assert tool_run.run_id == run_id
    assert [c.kwargs["run_id"] for c in h.calls] == [run_id, run_id]


@pytest.mark.asyncio
async def test_each_start_mints_a_fresh_run_id() -> None:
    m = CallbackManager()

    first = await m.on_chain_start({"name": "a"}, {})
    second = await m.on_chain_start({"name": "a"}, {})

    assert first.run_id != second.run_id


@pytest.mark.asyncio
async def test_run_events_carry_run_and_parent_ids(make_recorder) -> None:
    h = make_recorder()
    parent = uuid4()
    m = CallbackManager([h], parent_run_id=parent)

    run = await m.on_llm_start({"name": "gpt"}, ["p"])
    await run.on_llm_new_token("hel")
    await run.on_llm_new_token("lo")
    result = LLMResult(generations=[[Generation(text="hello")]])
    await run.on_llm_end(result)

    assert h.names == ["on_llm_start", "on_llm_new_token", "on_llm_new_token", "on_llm_end"]
    assert all(c.kwargs["run_id"] == run.run_id for c in h.calls)
    assert all(c.kwargs["parent_run_id"] == parent for c in h.calls)
    assert h.calls[1].args == ("hel",)
    assert h.calls[3].args == (result,)


@pytest.mark.asyncio
async def test_sync_and_async_handlers_receive_the_same_events(make_recorder, make_async_recorder) -> None:
    sync_h = make_recorder()
    async_h = make_async_recorder()
    m = CallbackManager([sync_h, async_h])

    run = await m.on_tool_start({"name": "calc"}, "1+1")
    await run.on_text("computing")
    await run.on_tool_end("2")

    assert sync_h.names == ["on_tool_start", "on_text", "on_tool_end"]
    assert async_h.names == sync_h.names


# === Fan-out ===


@pytest.mark.asyncio
async def test_failing_handlers_do_not_block_others_or_the_caller(make_recorder, log_records) -> None:
    good = make_recorder()
    m = CallbackManager([RaisingHandler(), AsyncRaisingHandler(), good])

    run = await m.on_chain_start({"name": "qa"}, {"input": "x"})

    assert good.names == ["on_chain_start"]
    assert good.calls[0].kwargs["run_id"] == run.run_id
    warnings = [r["message"] for r in log_records if r["level"].name == "WARNING"]
    assert len(warnings) == 2
    assert any("RaisingHandler(raising_handler).on_chain_start" in w and "boom" in w for w in warnings)
    assert any("AsyncRaisingHandler(async_raising_handler).on_chain_start" in w for w in warnings)


@pytest.mark.asyncio
async def test_failing_handler_is_isolated_on_run_manager_events(make_recorder, log_records) -> None:
    good = make_recorder()
    m = CallbackManager([RaisingHandler(), good])

    run = await m.on_llm_start({"name": "gpt"}, ["p"])
    await run.on_llm_new_token("a")
    await run.on_llm_new_token("b")

    assert good.names == ["on_llm_start", "on_llm_new_token", "on_llm_new_token"]
    assert sum("on_llm_new_token" in r["message"] for r in log_records) == 2


@pytest.mark.asyncio
async def test_fan_out_runs_handlers_concurrently() -> None:
    first_ready, second_ready = asyncio.Event(), asyncio.Event()
    first = RendezvousHandler(first_ready, second_ready)
    second = RendezvousHandler(second_ready, first_ready)
    m = CallbackManager([first, second])

    run = await m.on_chain_start({"name": "qa"}, {})
    await run.on_text("meet")

    assert first.completed
    assert second.completed


@pytest.mark.asyncio
async def test_dispatch_waits_for_every_handler() -> None:
    slow = SlowHandler()
    m = CallbackManager([slow])

    run = await m.on_chain_start({"name": "qa"}, {})
    await run.on_chain_end({"output": "y"})

    assert slow.finished


@pytest.mark.asyncio
async def test_dispatch_with_no_handlers_is_a_no_op() -> None:
    run = await CallbackManager().on_chain_start({"name": "qa"}, {})

    assert await run.on_chain_end({}) is None


# === Suppression and capabilities ===


@pytest.mark.asyncio
async def test_ignore_chain_suppresses_chain_and_agent_events(make_recorder) -> None:
    ok = make_recorder()
    muted = make_recorder()
    muted.ignore_chain = True
    m = CallbackManager([ok, muted])

    run = await m.on_chain_start({"name": "agent"}, {"input": "x"})
    await run.on_agent_action(AgentAction(tool="search", tool_input="x"))
    await run.on_agent_end(AgentFinish(return_values={"output": "y"}))
    await run.on_chain_error(RuntimeError("failed"))
    await run.on_chain_end({"output": "y"})

    assert ok.names == [
        "on_chain_start",
        "on_agent_action",
        "on_agent_end",
        "on_chain_error",
        "on_chain_end",
    ]
    assert muted.names == []


@pytest.mark.asyncio
async def test_ignore_flags_filter_by_category(make_recorder) -> None:
    h_llm = make_recorder()
    h_llm.ignore_llm = True
    h_agent = make_recorder()
    h_agent.ignore_agent = True
    h_tool = make_recorder()
    h_tool.ignore_tool = True
    m = CallbackManager([h_llm, h_agent, h_tool])

    chain = await m.on_chain_start({"name": "agent"}, {})
    await chain.on_agent_action(AgentAction(tool="calc", tool_input="2+2"))
    tool = await chain.get_child().on_tool_start({"name": "calc"}, "2+2")
    await tool.on_tool_end("4")
    llm = await chain.get_child().on_llm_start({"name": "gpt"}, ["p"])
    await llm.on_llm_error(RuntimeError("rate limited"))

    assert h_llm.names == ["on_chain_start", "on_agent_action", "on_tool_start", "on_tool_end"]
    assert h_agent.names == ["on_chain_start", "on_llm_start", "on_llm_error"]
    assert h_tool.names == ["on_chain_start", "on_agent_action", "on_llm_start", "on_llm_error"]


@pytest.mark.asyncio
async def test_text_is_delivered_regardless_of_ignore_flags(make_recorder) -> None:
    h = make_recorder()
    h.ignore_llm = h.ignore_chain = h.ignore_agent = h.ignore_tool = True
    m = CallbackManager([h])

    chain = await m.on_chain_start({"name": "qa"}, {})
    tool = await m.on_tool_start({"name": "calc"}, "x")
    llm = await m.on_llm_start({"name": "gpt"}, ["p"])
    for run in (chain, tool, llm):
        await run.on_text("note")

    assert h.names == ["on_text", "on_text", "on_text"]


@pytest.mark.asyncio
async def test_declared_capabilities_limit_delivery(make_recorder) -> None:
    h = make_recorder()
    h.capabilities = frozenset({Capability.LLM})
    m = CallbackManager([h])

    chain = await m.on_chain_start({"name": "qa"}, {})
    await chain.on_text("note")
    llm = await chain.get_child().on_llm_start({"name": "gpt"}, ["p"])
    await llm.on_llm_end(LLMResult())

    assert h.names == ["on_llm_start", "on_llm_end"]


# === Registration ===


def test_inheritable_handlers_stay_a_subset_of_handlers(make_recorder) -> None:
    a, b, c = make_recorder("a"), make_recorder("b"), make_recorder("c")
    m = CallbackManager()

    m.add_handler(a)
    m.add_handler(b, inherit=False)
    _assert_invariant(m)
    m.remove_handler(a)
    _assert_invariant(m)
    m.set_handlers([a, c], inherit=False)
    _assert_invariant(m)
    assert m.inheritable_handlers == []
    m.add_handler(b)
    m.set_handler(c)
    _assert_invariant(m)
    assert m.handlers == [c]
    assert m.inheritable_handlers == [c]


def test_add_handler_inherits_by_default(make_recorder) -> None:
    a, b = make_recorder("a"), make_recorder("b")
    m = CallbackManager()

    m.add_handler(a)
    m.add_handler(b, inherit=False)

    assert m.handlers == [a, b]
    assert m.inheritable_handlers == [a]


def test_remove_handler_matches_identity_not_name(make_recorder) -> None:
    first = make_recorder("dup")
    second = make_recorder("dup")
    m = CallbackManager()
    m.add_handler(first)
    m.add_handler(second)

    m.remove_handler(first)

    assert m.handlers == [second]
    assert m.inheritable_handlers == [second]


def test_manually_added_handlers_with_the_same_name_are_all_kept(make_recorder) -> None:
    m = CallbackManager()
    m.add_handler(make_recorder("same"))
    m.add_handler(make_recorder("same"))

    assert [h.name for h in m.handlers] == ["same", "same"]


def test_constructor_registers_inheritable_handlers_as_active(make_recorder) -> None:
    local, shared = make_recorder("local"), make_recorder("shared")

    m = CallbackManager(handlers=[local], inheritable_handlers=[shared])

    assert m.handlers == [local, shared]
    assert m.inheritable_handlers == [shared]
    _assert_invariant(m)


def test_handlers_property_returns_a_snapshot(make_recorder) -> None:
    m = CallbackManager([make_recorder()])

    m.handlers.clear()

    assert len(m.handlers) == 1


# === Snapshots and children ===


@pytest.mark.asyncio
async def test_run_manager_keeps_handlers_from_run_start(make_recorder) -> None:
    before, after = make_recorder("before"), make_recorder("after")
    m = CallbackManager([before])

    run = await m.on_chain_start({"name": "qa"}, {})
    m.remove_handler(before)
    m.add_handler(after)
    await run.on_chain_end({"output": "y"})

    assert before.names == ["on_chain_start", "on_chain_end"]
    assert after.names == []
    assert run.handlers == (before,)


@pytest.mark.asyncio
async def test_get_child_only_propagates_inheritable_handlers(make_recorder) -> None:
    a = make_recorder("A")
    b = make_recorder("B")
    d = CallbackManager()
    d.add_handler(a, inherit=True)
    d.add_handler(b, inherit=False)

    rm = await d.on_chain_start({"name": "pipeline"}, {"input": "x"})
    assert a.names == ["on_chain_start"]
    assert b.names == ["on_chain_start"]

    d2 = rm.get_child()
    assert d2.parent_run_id == rm.run_id
    assert d2.handlers == [a]
    assert d2.inheritable_handlers == [a]

    tool_run = await d2.on_tool_start({"name": "search"}, "x")
    assert a.names == ["on_chain_start", "on_tool_start"]
    assert a.calls[-1].kwargs["parent_run_id"] == rm.run_id
    assert a.calls[-1].kwargs["run_id"] == tool_run.run_id
    assert b.names == ["on_chain_start"]


@pytest.mark.asyncio
async def test_grandchildren_keep_inheritable_handlers(make_recorder) -> None:
    a = make_recorder("A")
    d = CallbackManager()
    d.add_handler(a)

    chain = await d.on_chain_start({"name": "outer"}, {})
    tool = await chain.get_child().on_tool_start({"name": "agent_tool"}, "x")
    llm = await tool.get_child().on_llm_start({"name": "gpt"}, ["p"])

    assert llm.parent_run_id == tool.run_id
    assert tool.parent_run_id == chain.run_id
    assert a.names == ["on_chain_start", "on_tool_start", "on_llm_start"]


@pytest.mark.asyncio
async def test_get_child_uses_inheritable_snapshot_from_run_start(make_recorder) -> None:
    a, late = make_recorder("A"), make_recorder("late")
    d = CallbackManager([a], inheritable_handlers=[a])

    chain = await d.on_chain_start({"name": "qa"}, {})
    d.add_handler(late)

    assert chain.get_child().handlers == [a]


@pytest.mark.asyncio
async def test_llm_runs_cannot_have_children() -> None:
    run = await CallbackManager().on_llm_start({"name": "gpt"}, ["p"])

    assert not hasattr(run, "get_child")


@pytest.mark.asyncio
async def test_run_manager_does_not_guard_events_after_terminal_event(make_recorder) -> None:
    # Callers own the run lifecycle: nothing stops events after end or error.
    h = make_recorder()
    run = await CallbackManager([h]).on_llm_start({"name": "gpt"}, ["p"])

    await run.on_llm_end(LLMResult())
    await run.on_llm_new_token("late")
    await run.on_llm_error(RuntimeError("late"))

    assert h.names == ["on_llm_start", "on_llm_end", "on_llm_new_token", "on_llm_error"]


# === Copy ===


def test_copy_duplicates_handlers_and_keeps_inheritability(make_recorder) -> None:
    a, b, extra = make_recorder("A"), make_recorder("B"), make_recorder("extra")
    parent = uuid4()
    m = CallbackManager(parent_run_id=parent)
    m.add_handler(a, inherit=True)
    m.add_handler(b, inherit=False)

    copied = m.copy([extra], inherit=False)

    assert copied.parent_run_id == parent
    assert [h.name for h in copied.handlers] == ["A", "B", "extra"]
    assert [h.name for h in copied.inheritable_handlers] == ["A"]
    assert all(h is not original for h, original in zip(copied.handlers, [a, b, extra], strict=True))
    _assert_invariant(copied)


@pytest.mark.asyncio
async def test_copied_handlers_do_not_share_state(make_recorder) -> None:
    a = make_recorder("A")
    m = CallbackManager([a])
    copied = m.copy()

    await copied.on_chain_start({"name": "qa"}, {})

    assert a.calls == []
    assert copied.handlers[0].names == ["on_chain_start"]


# === from_handlers ===


@pytest.mark.asyncio
async def test_from_handlers_builds_a_manager_from_callables() -> None:
    tokens: list[str] = []
    ends: list[dict[str, Any]] = []

    async def on_chain_end(outputs: dict[str, Any], **kwargs: Any) -> None:
        ends.append(outputs)

    m = CallbackManager.from_handlers(
        {
            "on_llm_new_token": lambda token, **kwargs: tokens.append(token),
            "on_chain_end": on_chain_end,
        }
    )

    chain = await m.on_chain_start({"name": "qa"}, {})
    llm = await chain.get_child().on_llm_start({"name": "gpt"}, ["p"])
    await llm.on_llm_new_token("hi")
    await chain.on_chain_end({"answer": "hi"})

    assert tokens == ["hi"]
    assert ends == [{"answer": "hi"}]
    assert len(m.inheritable_handlers) == 1
