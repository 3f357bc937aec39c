"""Session metrics and the first-timeout notification."""

from __future__ import annotations

from loguru import logger

from switchboard.config import Settings
from switchboard.events import LifecycleEventType, NewIdentity, SessionClose, SessionNew, StateEnter, StateExit
from switchboard.hookspecs import hookimpl
from switchboard.machine import TurnContext
from switchboard.metrics import (
    POSSIBLE_TIMEOUT_IN,
    SESSION_CLOSED_IN,
    SESSION_NEW_IN,
    STATE_ENTERED,
    STATE_EXITED,
    state_metric,
)
from switchboard.pipeline import EventPipeline


async def on_session_new(event: SessionNew, ctx: TurnContext) -> None:
    await ctx.metrics.incr_metric("ussd_sessions")
    await ctx.metrics.fire_increment(state_metric(SESSION_NEW_IN, ctx.state_name))
    ctx.profile.increment("ussd_sessions")


async def on_session_close(event: SessionClose, ctx: TurnContext) -> None:
    await ctx.metrics.fire_increment(state_metric(SESSION_CLOSED_IN, ctx.state_name))
    if not event.possible_timeout:
        return
    await ctx.metrics.fire_increment(state_metric(POSSIBLE_TIMEOUT_IN, ctx.state_name))
    timeouts = ctx.profile.increment("possible_timeouts")
    if timeouts > 1:
        logger.debug("metrics.repeat_timeout count={}", timeouts)
        return
    await ctx.notify(ctx.settings.timeout_message)


async def on_new_identity(event: NewIdentity, ctx: TurnContext) -> None:
    await ctx.metrics.incr_metric("unique_users")


async def on_state_enter(event: StateEnter, ctx: TurnContext) -> None:
    await ctx.metrics.fire_increment(state_metric(STATE_ENTERED, event.state_name))


async def on_state_exit(event: StateExit, ctx: TurnContext) -> None:
    await ctx.metrics.fire_increment(state_metric(STATE_EXITED, event.state_name))


class MetricsPlugin:
    @hookimpl(tryfirst=True)
    def register_reactions(self, pipeline: EventPipeline, settings: Settings) -> None:
        pipeline.register(LifecycleEventType.SESSION_NEW, on_session_new)
        pipeline.register(LifecycleEventType.SESSION_CLOSE, on_session_close)
        pipeline.register(LifecycleEventType.NEW_IDENTITY, on_new_identity)
        pipeline.register(LifecycleEventType.STATE_ENTER, on_state_enter)
        pipeline.register(LifecycleEventType.STATE_EXIT, on_state_exit)


plugin = MetricsPlugin()
