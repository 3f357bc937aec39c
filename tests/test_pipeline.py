from __future__ import annotations

import asyncio
from typing import Any

import pytest

from switchboard.events import LifecycleEventType, SessionNew, StateEnter
from switchboard.pipeline import EventPipeline


@pytest.mark.asyncio
async def test_reactions_run_in_registration_order_and_await_each_other() -> None:
    pipeline = EventPipeline()
    log: list[str] = []

    async def slow(event: Any, ctx: Any) -> None:
        await asyncio.sleep(0.01)
        log.append("slow")

    def sync(event: Any, ctx: Any) -> None:
        log.append("sync")

    async def fast(event: Any, ctx: Any) -> None:
        log.append("fast")

    pipeline.register(LifecycleEventType.SESSION_NEW, slow)
    pipeline.register("session.new", sync)
    pipeline.register(LifecycleEventType.SESSION_NEW, fast)

    settled = await pipeline.emit(SessionNew(), ctx=None)

    assert settled == 3
    assert log == ["slow", "sync", "fast"]


@pytest.mark.asyncio
async def test_later_reactions_read_what_earlier_ones_wrote() -> None:
    pipeline = EventPipeline()
    scratch: dict[str, int] = {}

    @pipeline.on(LifecycleEventType.STATE_ENTER)
    async def write(event: StateEnter, ctx: Any) -> None:
        await asyncio.sleep(0)
        scratch["count"] = 2

    @pipeline.on(LifecycleEventType.STATE_ENTER)
    async def read(event: StateEnter, ctx: Any) -> None:
        scratch["seen"] = scratch["count"] * 10

    await pipeline.emit(StateEnter(state_name="intro"), ctx=None)

    assert scratch == {"count": 2, "seen": 20}


@pytest.mark.asyncio
async def test_failing_reaction_does_not_stop_the_chain() -> None:
    pipeline = EventPipeline()
    log: list[str] = []

    async def broken(event: Any, ctx: Any) -> None:
        raise RuntimeError("boom")

    pipeline.register(LifecycleEventType.SESSION_NEW, broken)
    pipeline.register(LifecycleEventType.SESSION_NEW, lambda event, ctx: log.append("after"))

    settled = await pipeline.emit(SessionNew(), ctx=None)

    assert settled == 1
    assert log == ["after"]


@pytest.mark.asyncio
async def test_emit_only_runs_reactions_for_the_event_type() -> None:
    pipeline = EventPipeline()
    pipeline.register(LifecycleEventType.STATE_EXIT, lambda event, ctx: None)

    assert await pipeline.emit(SessionNew(), ctx=None) == 0
    assert len(pipeline.reactions_for("state.exit")) == 1
    assert pipeline.reactions_for(LifecycleEventType.STATE_ENTER) == []
