"""Outbound notifications (SMS) sent outside the USSD session."""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from switchboard.bus import BusProtocol
from switchboard.config import Settings
from switchboard.types import OutboundMessage


class Notifier(Protocol):
    async def send(self, identity: str, text: str) -> bool: ...


class NullNotifier:
    """Used when no notification route is configured; every send succeeds."""

    async def send(self, identity: str, text: str) -> bool:
        return True


class BusNotifier:
    """Publish notifications to the transport bus, tagged with a [pool, tag] route."""

    def __init__(self, bus: BusProtocol, pool: str, tag: str) -> None:
        self._bus = bus
        self.pool = pool
        self.tag = tag

    async def send(self, identity: str, text: str) -> bool:
        message = OutboundMessage(
            to=identity,
            content=text,
            helper_metadata={"tagpool": self.pool, "tag": self.tag},
        )
        try:
            await self._bus.publish_outbound(message)
        except Exception:
            logger.opt(exception=True).warning("notify.send_failed pool={} tag={}", self.pool, self.tag)
            return False
        logger.info("notify.sent pool={} tag={}", self.pool, self.tag)
        return True


def build_notifier(settings: Settings, bus: BusProtocol | None) -> Notifier:
    if settings.sms_tag is None or bus is None:
        return NullNotifier()
    pool, tag = settings.sms_tag
    return BusNotifier(bus, pool, tag)
