"""Transport-facing data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

type InboundKind = Literal["new", "resume", "close"]


@dataclass(frozen=True)
class InboundMessage:
    """One message delivered by the transport for an identity."""

    identity: str
    content: str | None = None
    kind: InboundKind = "resume"
    possible_timeout: bool = False


@dataclass(frozen=True)
class OutboundMessage:
    """One message handed back to the transport."""

    to: str
    content: str
    end_session: bool = False
    helper_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TurnResult:
    """Result of one complete turn."""

    identity: str
    state_name: str
    prompt: str
    is_terminal: bool = False
    invalid_input: bool = False

    def to_outbound(self) -> OutboundMessage:
        return OutboundMessage(to=self.identity, content=self.prompt, end_session=self.is_terminal)
