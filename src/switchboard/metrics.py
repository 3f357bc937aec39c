"""Fire-and-forget metrics."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Literal, Protocol

from loguru import logger

from switchboard.counters import CounterStore, increment_counter

SESSION_NEW_IN = "session_new_in."
SESSION_CLOSED_IN = "session_closed_in."
POSSIBLE_TIMEOUT_IN = "possible_timeout_in."
STATE_ENTERED = "state_entered."
STATE_EXITED = "state_exited."

type MetricOp = Literal["inc", "avg", "max"]


def state_metric(prefix: str, state_name: str) -> str:
    """Build a per-state metric name such as ``state_entered.intro``."""
    if not state_name:
        raise ValueError("state name must not be empty")
    return f"{prefix}{state_name}"


class MetricsSink(Protocol):
    async def fire_increment(self, name: str) -> None: ...

    async def fire_average(self, name: str, value: float) -> None: ...

    async def fire_max(self, name: str, value: float) -> None: ...


@dataclass(frozen=True)
class MetricFire:
    store: str
    op: MetricOp
    name: str
    value: float


class RecordingMetrics:
    """Keep every fired metric in memory.

    Useful for tests and for the CLI simulator, which prints the metrics a
    session produced when it ends.
    """

    def __init__(self, store: str = "default") -> None:
        self.store = store
        self.fired: list[MetricFire] = []
        self._counts: dict[str, float] = defaultdict(float)

    async def fire_increment(self, name: str) -> None:
        self._record("inc", name, 1.0)
        self._counts[name] += 1.0

    async def fire_average(self, name: str, value: float) -> None:
        self._record("avg", name, value)

    async def fire_max(self, name: str, value: float) -> None:
        self._record("max", name, value)

    def count(self, name: str) -> float:
        return self._counts.get(name, 0.0)

    def names(self, op: MetricOp | None = None) -> list[str]:
        return [fire.name for fire in self.fired if op is None or fire.op == op]

    def _record(self, op: MetricOp, name: str, value: float) -> None:
        self.fired.append(MetricFire(store=self.store, op=op, name=name, value=value))


class LoggingMetrics:
    """Emit metrics as structured log lines."""

    def __init__(self, store: str = "default") -> None:
        self.store = store

    async def fire_increment(self, name: str) -> None:
        logger.info("metric store={} op=inc name={}", self.store, name)

    async def fire_average(self, name: str, value: float) -> None:
        logger.info("metric store={} op=avg name={} value={}", self.store, name, value)

    async def fire_max(self, name: str, value: float) -> None:
        logger.info("metric store={} op=max name={} value={}", self.store, name, value)


class MetricsRecorder:
    """Metrics sink plus the shared counters that back running totals.

    Sink failures are logged and swallowed; metrics never stop a turn.
    """

    def __init__(self, sink: MetricsSink, counters: CounterStore) -> None:
        self.sink = sink
        self.counters = counters

    async def incr_metric(self, name: str) -> int:
        """Bump the shared ``metrics.<name>`` counter and publish its new value as a max."""
        value = await increment_counter(self.counters, f"metrics.{name}")
        await self.fire_max(name, value)
        return value

    async def fire_increment(self, name: str) -> None:
        try:
            await self.sink.fire_increment(name)
        except Exception:
            logger.opt(exception=True).warning("metrics.fire_failed op=inc name={}", name)

    async def fire_average(self, name: str, value: float) -> None:
        try:
            await self.sink.fire_average(name, value)
        except Exception:
            logger.opt(exception=True).warning("metrics.fire_failed op=avg name={}", name)

    async def fire_max(self, name: str, value: float) -> None:
        try:
            await self.sink.fire_max(name, value)
        except Exception:
            logger.opt(exception=True).warning("metrics.fire_failed op=max name={}", name)
