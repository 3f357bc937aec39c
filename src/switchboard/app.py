"""Application wiring: settings, plugins, collaborators and the bus loop."""

from __future__ import annotations

import asyncio
import re
import weakref
from collections.abc import Iterable
from typing import Any

import httpx
import pluggy
from loguru import logger
from redis.asyncio import Redis

from switchboard.builtin import metrics as builtin_metrics
from switchboard.bus import BusProtocol, MessageBus
from switchboard.config import Settings
from switchboard.counters import CounterStore, InMemoryCounterStore, RedisCounterStore
from switchboard.directory import DirectoryClient, build_directory
from switchboard.errors import ConfigurationError
from switchboard.flows import health_network
from switchboard.hookspecs import SWITCHBOARD_HOOK_NAMESPACE, SwitchboardHookSpecs
from switchboard.logging_utils import bind_identity
from switchboard.machine import StateMachine
from switchboard.metrics import LoggingMetrics, MetricsRecorder, MetricsSink
from switchboard.notify import Notifier, build_notifier
from switchboard.pipeline import EventPipeline
from switchboard.profile import FileProfileStore, InMemoryProfileStore, ProfileStore
from switchboard.states import StateGraph
from switchboard.types import InboundMessage, TurnResult

BUILTIN_PLUGINS: tuple[tuple[str, Any], ...] = (
    ("builtin:health_network", health_network.plugin),
    ("builtin:metrics", builtin_metrics.plugin),
)


def build_profile_store(settings: Settings) -> ProfileStore:
    if settings.profile_home is None:
        return InMemoryProfileStore()
    return FileProfileStore(settings.profile_home)


def build_counter_store(settings: Settings) -> CounterStore:
    if settings.redis_url is None:
        return InMemoryCounterStore()
    return RedisCounterStore(Redis.from_url(settings.redis_url), key_prefix=settings.metric_store)


class SwitchboardApp:
    """Serve USSD turns for many identities at once.

    Turns of the same identity are serialized with a per-identity lock;
    different identities run concurrently.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        bus: BusProtocol | None = None,
        profiles: ProfileStore | None = None,
        counters: CounterStore | None = None,
        metrics_sink: MetricsSink | None = None,
        notifier: Notifier | None = None,
        http_client: httpx.AsyncClient | None = None,
        plugins: Iterable[Any] = (),
        load_entrypoints: bool = False,
    ) -> None:
        self.settings = settings
        self.bus = bus or MessageBus()
        self._plugin_manager = pluggy.PluginManager(SWITCHBOARD_HOOK_NAMESPACE)
        self._plugin_manager.add_hookspecs(SwitchboardHookSpecs)
        for name, plugin in BUILTIN_PLUGINS:
            self._plugin_manager.register(plugin, name=name)
        if load_entrypoints:
            self._plugin_manager.load_setuptools_entrypoints(SWITCHBOARD_HOOK_NAMESPACE)
        for plugin in plugins:
            self._plugin_manager.register(plugin)

        self.profiles = profiles or build_profile_store(settings)
        self.counters = counters or build_counter_store(settings)
        self.metrics = MetricsRecorder(metrics_sink or LoggingMetrics(settings.metric_store), self.counters)
        self.notifier = notifier or build_notifier(settings, self.bus)
        self._owns_http_client = http_client is None and settings.swb_api is not None
        self._http_client = http_client
        if self._owns_http_client:
            self._http_client = httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        self._address_patterns = self._compile_patterns(settings.valid_user_addresses)
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

        self.pipeline = EventPipeline()
        self._plugin_manager.hook.register_reactions(pipeline=self.pipeline, settings=settings)
        self.machine = StateMachine(
            self._load_flow(),
            self.pipeline,
            settings=settings,
            profiles=self.profiles,
            metrics=self.metrics,
            notifier=self.notifier,
            directory_factory=self.directory_for,
        )

    async def __aenter__(self) -> SwitchboardApp:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def graph(self) -> StateGraph:
        return self.machine.graph

    def plugin_names(self) -> list[str]:
        return [name for name, _ in self._plugin_manager.list_name_plugin()]

    def directory_for(self, lang: str) -> DirectoryClient:
        return build_directory(self.settings, lang, client=self._http_client)

    def is_allowed(self, identity: str) -> bool:
        if self.settings.qa or not self._address_patterns:
            return True
        return any(pattern.search(identity) for pattern in self._address_patterns)

    async def handle_inbound(self, message: InboundMessage) -> TurnResult | None:
        """Run one transport message; ``close`` messages produce no reply."""

        identity = message.identity
        bind_identity(identity)
        if not self.is_allowed(identity):
            logger.warning("app.address_rejected")
            return TurnResult(identity=identity, state_name="", prompt=self.settings.reject_message, is_terminal=True)

        lock = self._lock_for(identity)
        async with lock:
            if message.kind == "close":
                await self.machine.close_session(identity, possible_timeout=message.possible_timeout)
                return None
            if message.kind == "new":
                if self.machine.is_open(identity):
                    await self.machine.close_session(identity)
                result = await self.machine.open_session(identity)
            else:
                result = await self.machine.handle_turn(identity, message.content)
            if result.is_terminal:
                await self.machine.close_session(identity)
            return result

    async def handle_bus_once(self, timeout_seconds: float | None = None) -> TurnResult | None:
        """Consume one inbound message from the bus and publish its reply."""

        inbound = await self.bus.next_inbound(timeout_seconds=timeout_seconds)
        if inbound is None:
            return None
        result = await self.handle_inbound(inbound)
        if result is not None:
            await self.bus.publish_outbound(result.to_outbound())
        return result

    async def run(self, stop: asyncio.Event, *, poll_seconds: float = 0.5) -> None:
        """Serve the bus until ``stop`` is set, one task per inbound message."""

        tasks: set[asyncio.Task[None]] = set()
        while not stop.is_set():
            inbound = await self.bus.next_inbound(timeout_seconds=poll_seconds)
            if inbound is None:
                continue
            task = asyncio.create_task(self._serve(inbound))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
        if tasks:
            await asyncio.gather(*tasks)

    async def aclose(self) -> None:
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()

    async def _serve(self, inbound: InboundMessage) -> None:
        try:
            result = await self.handle_inbound(inbound)
        except Exception:
            logger.exception("app.turn_failed identity={}", inbound.identity)
            return
        if result is not None:
            await self.bus.publish_outbound(result.to_outbound())

    def _lock_for(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def _load_flow(self) -> StateGraph:
        graph = self._plugin_manager.hook.provide_flow(settings=self.settings)
        if graph is None:
            raise ConfigurationError("No plugin provided a conversation flow")
        return graph

    @staticmethod
    def _compile_patterns(patterns: list[str]) -> list[re.Pattern[str]]:
        try:
            return [re.compile(pattern) for pattern in patterns]
        except re.error as exc:
            raise ConfigurationError(f"Invalid valid_user_addresses pattern: {exc!s}") from exc
