"""Lifecycle events raised by the state machine.

Every event type follows the ``domain.action`` naming pattern so reactions
can be registered against a stable string and log lines stay greppable.
"""

from __future__ import annotations

from abc import ABC
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict

type EventType = str | Enum


class DomainEventType(str, Enum):
    """Base class for domain event types with standardized naming."""

    @property
    def domain(self) -> str:
        """Extract domain from event type."""
        return str(self.value).split(".")[0]

    @property
    def action(self) -> str:
        """Extract action from event type."""
        return str(self.value).split(".")[1]


class LifecycleEventType(DomainEventType):
    SESSION_NEW = "session.new"
    SESSION_CLOSE = "session.close"
    NEW_IDENTITY = "identity.new"
    STATE_ENTER = "state.enter"
    STATE_EXIT = "state.exit"


def normalize_event_type(event_type: EventType) -> str:
    """Normalize event type to string representation.

    Args:
        event_type: Event type as string or Enum

    Returns:
        Normalized string representation
    """
    if isinstance(event_type, Enum):
        return str(event_type.value)
    return str(event_type)


class BaseEvent(BaseModel, ABC):
    """Base class for all lifecycle events.

    Subclasses define their ``event_type``; instances are immutable.
    """

    event_type: ClassVar[LifecycleEventType]

    model_config = ConfigDict(frozen=True)

    @classmethod
    def get_event_type_value(cls) -> str:
        """Get the string value of the event type."""
        return normalize_event_type(cls.event_type)


class SessionNew(BaseEvent):
    event_type = LifecycleEventType.SESSION_NEW


class SessionClose(BaseEvent):
    event_type = LifecycleEventType.SESSION_CLOSE
    possible_timeout: bool = False


class NewIdentity(BaseEvent):
    event_type = LifecycleEventType.NEW_IDENTITY


class StateEnter(BaseEvent):
    event_type = LifecycleEventType.STATE_ENTER
    state_name: str


class StateExit(BaseEvent):
    event_type = LifecycleEventType.STATE_EXIT
    state_name: str
