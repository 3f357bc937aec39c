from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import pytest

from switchboard.builtin import metrics as builtin_metrics
from switchboard.config import Settings
from switchboard.counters import InMemoryCounterStore
from switchboard.directory import DirectoryClient, StubDirectory
from switchboard.events import LifecycleEventType
from switchboard.machine import StateMachine, TurnContext
from switchboard.metrics import MetricsRecorder, RecordingMetrics
from switchboard.pipeline import EventPipeline
from switchboard.profile import InMemoryProfileStore
from switchboard.states import StateGraph


class RecordingNotifier:
    def __init__(self, *, fail: bool = False, log: list[str] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = fail
        self.log = log

    async def send(self, identity: str, text: str) -> bool:
        if self.fail:
            raise RuntimeError("sms gateway down")
        self.sent.append((identity, text))
        if self.log is not None:
            self.log.append(f"notify:{text}")
        return True


class FailingCounterStore:
    async def increment(self, key: str, amount: int = 1) -> int:
        raise ConnectionError("redis unavailable")


@dataclass
class Harness:
    machine: StateMachine
    pipeline: EventPipeline
    metrics: RecordingMetrics
    counters: Any
    profiles: InMemoryProfileStore
    notifier: RecordingNotifier
    directory: DirectoryClient
    events: list[tuple[str, str | None]] = field(default_factory=list)

    def event_names(self) -> list[str]:
        return [name for name, _ in self.events]


type HarnessFactory = Callable[..., Harness]


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def make_harness(settings: Settings) -> HarnessFactory:
    def factory(
        graph: StateGraph,
        *,
        directory: DirectoryClient | None = None,
        notifier: RecordingNotifier | None = None,
        counters: Any = None,
        metrics: RecordingMetrics | None = None,
        profiles: InMemoryProfileStore | None = None,
        builtin_reactions: bool = True,
        record_events: bool = True,
        settings_override: Settings | None = None,
    ) -> Harness:
        active_settings = settings_override or settings
        pipeline = EventPipeline()
        harness_events: list[tuple[str, str | None]] = []
        if record_events:

            def record(event: Any, ctx: TurnContext) -> None:
                harness_events.append((event.get_event_type_value(), getattr(event, "state_name", None)))

            for event_type in LifecycleEventType:
                pipeline.register(event_type, record)
        if builtin_reactions:
            builtin_metrics.plugin.register_reactions(pipeline=pipeline, settings=active_settings)

        sink = metrics if metrics is not None else RecordingMetrics(active_settings.metric_store)
        counter_store = counters if counters is not None else InMemoryCounterStore()
        profile_store = profiles if profiles is not None else InMemoryProfileStore()
        active_notifier = notifier or RecordingNotifier()
        active_directory = directory or StubDirectory()
        machine = StateMachine(
            graph,
            pipeline,
            settings=active_settings,
            profiles=profile_store,
            metrics=MetricsRecorder(sink, counter_store),
            notifier=active_notifier,
            directory_factory=lambda lang: active_directory,
        )
        return Harness(
            machine=machine,
            pipeline=pipeline,
            metrics=sink,
            counters=counter_store,
            profiles=profile_store,
            notifier=active_notifier,
            directory=active_directory,
            events=harness_events,
        )

    return factory
