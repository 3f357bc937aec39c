"""Conversation states and the validated state graph."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from switchboard.errors import FlowDefinitionError

if TYPE_CHECKING:
    from switchboard.machine import TurnContext

type Transition = str | Mapping[str, str] | Callable[[str], str | None]
type InputHandler = Callable[[str, "TurnContext"], Awaitable[str]]
type EnterHook = Callable[["TurnContext"], Awaitable[str | None] | str | None]
type ExitHook = Callable[["TurnContext"], Awaitable[None] | None]


@dataclass(frozen=True)
class Choice:
    value: str
    label: str


@dataclass(frozen=True, kw_only=True)
class State:
    """A named node of the conversation graph.

    ``targets`` lists the states a dynamic transition (a function or an
    async handler) can resolve to, so the graph can check them up front.
    ``on_enter`` may return the name of a state to redirect to.
    """

    kind: ClassVar[str] = "state"

    name: str
    prompt: str
    answer_key: str | None = None
    on_enter: EnterHook | None = None
    on_exit: ExitHook | None = None
    targets: tuple[str, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return False

    @property
    def storage_key(self) -> str:
        return self.answer_key or self.name

    def render(self) -> str:
        return self.prompt

    def static_targets(self) -> tuple[str, ...]:
        return self.targets


@dataclass(frozen=True, kw_only=True)
class MenuState(State):
    """Prompt plus ordered choices; the chosen value picks the next state.

    Input that matches no choice value goes to ``on_invalid`` when it is set
    and otherwise re-prompts this state.
    """

    kind: ClassVar[str] = "menu"

    choices: tuple[Choice, ...]
    next_state: Transition
    on_invalid: str | None = None

    def render(self) -> str:
        lines = [self.prompt]
        lines.extend(f"{choice.value}. {choice.label}" for choice in self.choices)
        return "\n".join(lines)

    def match(self, raw_input: str) -> Choice | None:
        for choice in self.choices:
            if choice.value == raw_input:
                return choice
        return None

    def resolve(self, value: str) -> str | None:
        if isinstance(self.next_state, str):
            return self.next_state
        if isinstance(self.next_state, Mapping):
            return self.next_state.get(value)
        return self.next_state(value)

    def static_targets(self) -> tuple[str, ...]:
        targets = list(self.targets)
        if isinstance(self.next_state, str):
            targets.append(self.next_state)
        elif isinstance(self.next_state, Mapping):
            targets.extend(self.next_state.values())
        if self.on_invalid is not None:
            targets.append(self.on_invalid)
        return tuple(targets)


@dataclass(frozen=True, kw_only=True)
class FreeInputState(State):
    """Prompt for free text; either a fixed target or an async handler decides what follows."""

    kind: ClassVar[str] = "free_input"

    next_state: str | None = None
    handler: InputHandler | None = None

    def __post_init__(self) -> None:
        if (self.next_state is None) == (self.handler is None):
            raise FlowDefinitionError(f"State '{self.name}' needs exactly one of next_state and handler")

    def static_targets(self) -> tuple[str, ...]:
        if self.next_state is None:
            return self.targets
        return (*self.targets, self.next_state)


@dataclass(frozen=True, kw_only=True)
class TerminalState(State):
    """Ends the session. ``next_state`` is where the identity's next session starts."""

    kind: ClassVar[str] = "terminal"

    next_state: str | None = None

    @property
    def is_terminal(self) -> bool:
        return True

    def static_targets(self) -> tuple[str, ...]:
        if self.next_state is None:
            return self.targets
        return (*self.targets, self.next_state)


@dataclass
class StateGraph:
    """Mapping of state name to state with one distinguished entry point."""

    initial: str
    states: dict[str, State] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def build(cls, initial: str, states: Iterable[State]) -> StateGraph:
        mapping: dict[str, State] = {}
        for state in states:
            if not state.name:
                raise FlowDefinitionError("State names must not be empty")
            if state.name in mapping:
                raise FlowDefinitionError(f"Duplicate state name: {state.name}")
            mapping[state.name] = state
        return cls(initial=initial, states=mapping)

    def validate(self) -> None:
        if self.initial not in self.states:
            raise FlowDefinitionError(f"Initial state '{self.initial}' is not defined")
        missing = sorted(
            {
                f"{state.name} -> {target}"
                for state in self.states.values()
                for target in state.static_targets()
                if target not in self.states
            }
        )
        if missing:
            raise FlowDefinitionError(f"Unknown transition targets: {', '.join(missing)}")

    def __contains__(self, name: object) -> bool:
        return name in self.states

    def __iter__(self) -> Iterator[State]:
        return iter(self.states.values())

    def __len__(self) -> int:
        return len(self.states)

    def get(self, name: str) -> State:
        state = self.states.get(name)
        if state is None:
            raise FlowDefinitionError(f"Unknown state: {name}")
        return state

    def resume_target(self, state: State) -> str:
        """Where a session starts when the identity last stopped in ``state``."""
        if isinstance(state, TerminalState):
            return state.next_state or self.initial
        return state.name
