from __future__ import annotations

import pytest
from conftest import FailingCounterStore

from switchboard.counters import InMemoryCounterStore, RedisCounterStore, increment_counter
from switchboard.metrics import MetricsRecorder, RecordingMetrics


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, int] = {}

    async def incrby(self, key: str, amount: int) -> int:
        self.values[key] = self.values.get(key, 0) + amount
        return self.values[key]


@pytest.mark.asyncio
async def test_in_memory_counter_increments() -> None:
    store = InMemoryCounterStore()

    assert await store.increment("metrics.ussd_sessions") == 1
    assert await store.increment("metrics.ussd_sessions", 4) == 5
    assert store.get("metrics.ussd_sessions") == 5
    assert store.get("missing") == 0


@pytest.mark.asyncio
async def test_redis_counter_uses_prefixed_keys() -> None:
    redis = FakeRedis()
    store = RedisCounterStore(redis, key_prefix="hnp")  # type: ignore[arg-type]

    assert await store.increment("metrics.unique_users") == 1
    assert await store.increment("metrics.unique_users") == 2
    assert redis.values == {"hnp:metrics.unique_users": 2}


@pytest.mark.asyncio
async def test_counter_failure_resolves_to_zero() -> None:
    assert await increment_counter(FailingCounterStore(), "metrics.ussd_sessions") == 0


@pytest.mark.asyncio
async def test_incr_metric_publishes_running_total_as_max() -> None:
    sink = RecordingMetrics("hnp")
    recorder = MetricsRecorder(sink, InMemoryCounterStore())

    await recorder.incr_metric("unique_users")
    value = await recorder.incr_metric("unique_users")

    assert value == 2
    assert [(fire.store, fire.op, fire.name, fire.value) for fire in sink.fired] == [
        ("hnp", "max", "unique_users", 1),
        ("hnp", "max", "unique_users", 2),
    ]


@pytest.mark.asyncio
async def test_incr_metric_with_broken_counters_fires_zero() -> None:
    sink = RecordingMetrics()
    recorder = MetricsRecorder(sink, FailingCounterStore())

    assert await recorder.incr_metric("ussd_sessions") == 0
    assert sink.fired[0].value == 0


class BrokenSink:
    async def fire_increment(self, name: str) -> None:
        raise ConnectionError("metrics backend down")

    async def fire_average(self, name: str, value: float) -> None:
        raise ConnectionError("metrics backend down")

    async def fire_max(self, name: str, value: float) -> None:
        raise ConnectionError("metrics backend down")


@pytest.mark.asyncio
async def test_sink_failures_are_swallowed() -> None:
    counters = InMemoryCounterStore()
    recorder = MetricsRecorder(BrokenSink(), counters)

    assert await recorder.incr_metric("ussd_sessions") == 1
    await recorder.fire_increment("state_entered.intro")
    await recorder.fire_average("sessions_taken_to_register", 2)
    await recorder.fire_max("unique_users", 3)

    assert counters.get("metrics.ussd_sessions") == 1
