"""Conversation engine: one turn in, one prompt out."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from switchboard.config import Settings
from switchboard.directory import DirectoryClient
from switchboard.errors import FlowDefinitionError, StateHandlerError
from switchboard.events import NewIdentity, SessionClose, SessionNew, StateEnter, StateExit
from switchboard.logging_utils import bind_identity
from switchboard.metrics import MetricsRecorder
from switchboard.notify import Notifier
from switchboard.pipeline import EventPipeline
from switchboard.profile import ProfileStore, SessionProfile
from switchboard.states import EnterHook, FreeInputState, MenuState, State, StateGraph, TerminalState
from switchboard.types import TurnResult

MAX_REDIRECTS = 8

type DirectoryFactory = Callable[[str], DirectoryClient]


@dataclass
class Session:
    """Live state of one open conversation."""

    identity: str
    state_name: str
    profile: SessionProfile
    directory: DirectoryClient
    scratch: dict[str, Any] = field(default_factory=dict)


@dataclass
class TurnContext:
    """Everything state handlers and event reactions may touch."""

    session: Session
    settings: Settings
    metrics: MetricsRecorder
    notifier: Notifier

    @property
    def identity(self) -> str:
        return self.session.identity

    @property
    def profile(self) -> SessionProfile:
        return self.session.profile

    @property
    def directory(self) -> DirectoryClient:
        return self.session.directory

    @property
    def state_name(self) -> str:
        return self.session.state_name

    async def notify(self, text: str) -> bool:
        """Send a notification to this identity; failures are logged, never raised."""
        try:
            sent = await self.notifier.send(self.identity, text)
        except Exception:
            logger.opt(exception=True).warning("notify.failed")
            return False
        logger.info("notify.result sent={}", sent)
        return sent


class StateMachine:
    """Drive open sessions through a :class:`StateGraph`.

    The machine owns state transitions and lifecycle events only; directory
    calls, metrics and notifications happen inside state handlers and
    pipeline reactions through the :class:`TurnContext`.
    """

    def __init__(
        self,
        graph: StateGraph,
        pipeline: EventPipeline,
        *,
        settings: Settings,
        profiles: ProfileStore,
        metrics: MetricsRecorder,
        notifier: Notifier,
        directory_factory: DirectoryFactory,
    ) -> None:
        self.graph = graph
        self.pipeline = pipeline
        self.settings = settings
        self._profiles = profiles
        self._metrics = metrics
        self._notifier = notifier
        self._directory_factory = directory_factory
        self._sessions: dict[str, TurnContext] = {}

    def is_open(self, identity: str) -> bool:
        return identity in self._sessions

    def open_identities(self) -> list[str]:
        return sorted(self._sessions)

    async def open_session(self, identity: str) -> TurnResult:
        """Start (or rejoin) a session and return the prompt of its current state."""
        ctx = await self._open(identity)
        return self._result(ctx)

    async def handle_turn(self, identity: str, raw_input: str | None) -> TurnResult:
        """Feed one input to the current state and move to the next one."""
        ctx = await self._open(identity)
        state = self.graph.get(ctx.state_name)
        if isinstance(state, TerminalState):
            return self._result(ctx)

        text = raw_input if raw_input is not None else ""
        await self._emit_exit(ctx, state)
        next_name, invalid_input = await self._dispatch(state, text, ctx)
        if not invalid_input:
            await self._run_exit_hook(ctx, state)
        await self._enter(ctx, next_name, run_hooks=not invalid_input)
        self._profiles.save(ctx.profile)
        return self._result(ctx, invalid_input=invalid_input)

    async def close_session(self, identity: str, *, possible_timeout: bool = False) -> bool:
        """Emit the close event for an open session and forget it."""
        ctx = self._sessions.pop(identity, None)
        if ctx is None:
            logger.debug("machine.close_unknown_session identity={}", identity)
            return False
        bind_identity(identity)
        await self.pipeline.emit(SessionClose(possible_timeout=possible_timeout), ctx)
        self._profiles.save(ctx.profile)
        logger.info("machine.session_closed state={} possible_timeout={}", ctx.state_name, possible_timeout)
        return True

    async def _open(self, identity: str) -> TurnContext:
        bind_identity(identity)
        existing = self._sessions.get(identity)
        if existing is not None:
            return existing

        profile = self._profiles.load(identity)
        new_identity = profile.is_new
        state_name = self._resume_state(profile.current_state)
        profile.current_state = state_name
        directory = self._directory_factory(profile.lang or self.settings.default_lang)
        session = Session(identity=identity, state_name=state_name, profile=profile, directory=directory)
        ctx = TurnContext(session=session, settings=self.settings, metrics=self._metrics, notifier=self._notifier)
        self._sessions[identity] = ctx

        if new_identity:
            await self.pipeline.emit(NewIdentity(), ctx)
        await self.pipeline.emit(SessionNew(), ctx)
        self._profiles.save(profile)
        logger.info("machine.session_opened state={} new_identity={}", state_name, new_identity)
        return ctx

    def _resume_state(self, persisted: str | None) -> str:
        if persisted is None:
            return self.graph.initial
        if persisted not in self.graph:
            logger.warning("machine.unknown_persisted_state state={}", persisted)
            return self.graph.initial
        return self.graph.resume_target(self.graph.get(persisted))

    async def _dispatch(self, state: State, text: str, ctx: TurnContext) -> tuple[str, bool]:
        if isinstance(state, MenuState):
            return self._dispatch_menu(state, text, ctx)
        if isinstance(state, FreeInputState):
            ctx.profile.set_answer(state.storage_key, text)
            if state.handler is None:
                return self._require(state.next_state or state.name, state), False
            try:
                target = await state.handler(text, ctx)
            except Exception as exc:
                raise StateHandlerError(state.name, exc) from exc
            return self._require(target, state), False
        raise FlowDefinitionError(f"State '{state.name}' of kind '{state.kind}' does not take input")

    def _dispatch_menu(self, state: MenuState, text: str, ctx: TurnContext) -> tuple[str, bool]:
        choice = state.match(text)
        if choice is not None:
            try:
                target = state.resolve(choice.value)
            except Exception as exc:
                raise StateHandlerError(state.name, exc) from exc
            if target is not None:
                ctx.profile.set_answer(state.storage_key, choice.value)
                return self._require(target, state), False

        logger.debug("machine.invalid_choice state={}", state.name)
        if state.on_invalid is not None:
            return state.on_invalid, False
        return state.name, True

    def _require(self, target: str, source: State) -> str:
        if target not in self.graph:
            raise FlowDefinitionError(f"State '{source.name}' resolved to unknown state '{target}'")
        return target

    async def _emit_exit(self, ctx: TurnContext, state: State) -> None:
        await self.pipeline.emit(StateExit(state_name=state.name), ctx)

    async def _run_exit_hook(self, ctx: TurnContext, state: State) -> None:
        if state.on_exit is None:
            return
        try:
            value = state.on_exit(ctx)
            if inspect.isawaitable(value):
                await value
        except Exception as exc:
            raise StateHandlerError(state.name, exc) from exc

    async def _enter(self, ctx: TurnContext, name: str, *, run_hooks: bool = True) -> None:
        for _ in range(MAX_REDIRECTS):
            state = self.graph.get(name)
            await self.pipeline.emit(StateEnter(state_name=name), ctx)
            ctx.session.state_name = name
            ctx.profile.current_state = name
            if not run_hooks or state.on_enter is None:
                return
            redirect = await self._run_enter_hook(ctx, state, state.on_enter)
            if redirect is None:
                return
            name = self._require(redirect, state)
            await self._emit_exit(ctx, state)
            await self._run_exit_hook(ctx, state)
        raise FlowDefinitionError(f"More than {MAX_REDIRECTS} redirects while entering '{name}'")

    @staticmethod
    async def _run_enter_hook(ctx: TurnContext, state: State, hook: EnterHook) -> str | None:
        try:
            value = hook(ctx)
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            raise StateHandlerError(state.name, exc) from exc
        return value

    def _result(self, ctx: TurnContext, *, invalid_input: bool = False) -> TurnResult:
        state = self.graph.get(ctx.state_name)
        return TurnResult(
            identity=ctx.identity,
            state_name=state.name,
            prompt=state.render(),
            is_terminal=state.is_terminal,
            invalid_input=invalid_input,
        )
