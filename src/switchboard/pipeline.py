"""Ordered asynchronous reactions to lifecycle events."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from loguru import logger

from switchboard.events import BaseEvent, EventType, normalize_event_type

if TYPE_CHECKING:
    from switchboard.machine import TurnContext

type Reaction = Callable[[Any, "TurnContext"], Awaitable[None] | None]


class EventPipeline:
    """Run reactions for one event type strictly in registration order.

    Each reaction is awaited before the next one starts, so later reactions
    can read what earlier ones wrote (e.g. a counter incremented before an
    average is computed from it). Failures are logged and the chain goes on.
    """

    def __init__(self) -> None:
        self._reactions: dict[str, list[Reaction]] = {}

    def register(self, event_type: EventType, reaction: Reaction) -> Reaction:
        self._reactions.setdefault(normalize_event_type(event_type), []).append(reaction)
        return reaction

    def on(self, event_type: EventType) -> Callable[[Reaction], Reaction]:
        """Decorator form of :meth:`register`."""

        def decorator(reaction: Reaction) -> Reaction:
            return self.register(event_type, reaction)

        return decorator

    def reactions_for(self, event_type: EventType) -> list[Reaction]:
        return list(self._reactions.get(normalize_event_type(event_type), []))

    async def emit(self, event: BaseEvent, ctx: TurnContext) -> int:
        """Run every reaction for ``event`` and return how many settled cleanly."""

        event_type = event.get_event_type_value()
        settled = 0
        for reaction in self.reactions_for(event_type):
            try:
                value = reaction(event, ctx)
                if inspect.isawaitable(value):
                    await value
            except Exception:
                logger.opt(exception=True).warning(
                    "pipeline.reaction_failed event={} reaction={}",
                    event_type,
                    _reaction_name(reaction),
                )
                continue
            settled += 1
        return settled


def _reaction_name(reaction: Reaction) -> str:
    return getattr(reaction, "__qualname__", None) or repr(reaction)
