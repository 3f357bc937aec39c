"""Minimal async message bus used as the in-process transport."""

from __future__ import annotations

import asyncio
from typing import Protocol

from switchboard.types import InboundMessage, OutboundMessage


class BusProtocol(Protocol):
    """Minimal async contract for transports."""

    async def publish_inbound(self, message: InboundMessage) -> None: ...

    async def publish_outbound(self, message: OutboundMessage) -> None: ...

    async def next_inbound(self, timeout_seconds: float | None = None) -> InboundMessage | None: ...

    async def next_outbound(self, timeout_seconds: float | None = None) -> OutboundMessage | None: ...


class MessageBus:
    """In-memory async bus for inbound turns and outbound replies."""

    def __init__(self) -> None:
        self._inbound: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self._outbound: asyncio.Queue[OutboundMessage] = asyncio.Queue()

    async def publish_inbound(self, message: InboundMessage) -> None:
        await self._inbound.put(message)

    async def publish_outbound(self, message: OutboundMessage) -> None:
        await self._outbound.put(message)

    async def next_inbound(self, timeout_seconds: float | None = None) -> InboundMessage | None:
        return await _next(self._inbound, timeout_seconds)

    async def next_outbound(self, timeout_seconds: float | None = None) -> OutboundMessage | None:
        return await _next(self._outbound, timeout_seconds)


async def _next[T](queue: asyncio.Queue[T], timeout_seconds: float | None) -> T | None:
    if timeout_seconds is None:
        return await queue.get()
    try:
        return await asyncio.wait_for(queue.get(), timeout=timeout_seconds)
    except TimeoutError:
        return None
