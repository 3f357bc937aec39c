from __future__ import annotations

import pytest
from conftest import FailingCounterStore, HarnessFactory, RecordingNotifier

from switchboard.states import Choice, MenuState, StateGraph, TerminalState


def _graph() -> StateGraph:
    return StateGraph.build(
        "menu",
        [
            MenuState(name="menu", prompt="Pick", choices=(Choice("1", "Done"),), next_state="done"),
            TerminalState(name="done", prompt="Done", next_state="menu"),
        ],
    )


@pytest.mark.asyncio
async def test_session_metrics_for_new_identity(make_harness: HarnessFactory) -> None:
    harness = make_harness(_graph(), record_events=False)

    await harness.machine.open_session("111")
    await harness.machine.handle_turn("111", "1")
    await harness.machine.close_session("111")

    assert harness.metrics.names() == [
        "unique_users",
        "ussd_sessions",
        "session_new_in.menu",
        "state_exited.menu",
        "state_entered.done",
        "session_closed_in.done",
    ]
    assert harness.counters.get("metrics.unique_users") == 1
    assert harness.counters.get("metrics.ussd_sessions") == 1
    assert harness.profiles.load("111").get("ussd_sessions") == 1


@pytest.mark.asyncio
async def test_unique_users_counts_identities_not_sessions(make_harness: HarnessFactory) -> None:
    harness = make_harness(_graph(), record_events=False)

    for identity in ("111", "111", "222"):
        await harness.machine.open_session(identity)
        await harness.machine.close_session(identity)

    assert harness.counters.get("metrics.unique_users") == 2
    assert harness.counters.get("metrics.ussd_sessions") == 3
    assert harness.profiles.load("111").get("ussd_sessions") == 2


@pytest.mark.asyncio
async def test_timeout_notification_is_sent_once_per_identity(make_harness: HarnessFactory) -> None:
    notifier = RecordingNotifier()
    harness = make_harness(_graph(), notifier=notifier, record_events=False)

    for _ in range(3):
        await harness.machine.open_session("111")
        await harness.machine.close_session("111", possible_timeout=True)

    assert notifier.sent == [("111", harness.machine.settings.timeout_message)]
    assert harness.profiles.load("111").get("possible_timeouts") == 3
    assert harness.metrics.count("possible_timeout_in.menu") == 3


@pytest.mark.asyncio
async def test_regular_close_does_not_notify(make_harness: HarnessFactory) -> None:
    notifier = RecordingNotifier()
    harness = make_harness(_graph(), notifier=notifier, record_events=False)

    await harness.machine.open_session("111")
    await harness.machine.close_session("111")

    assert notifier.sent == []
    assert "possible_timeout_in.menu" not in harness.metrics.names()


@pytest.mark.asyncio
async def test_notification_failure_does_not_break_close(make_harness: HarnessFactory) -> None:
    harness = make_harness(_graph(), notifier=RecordingNotifier(fail=True), record_events=False)

    await harness.machine.open_session("111")

    assert await harness.machine.close_session("111", possible_timeout=True)
    assert harness.profiles.load("111").get("possible_timeouts") == 1


@pytest.mark.asyncio
async def test_counter_store_failure_still_completes_turn(make_harness: HarnessFactory) -> None:
    harness = make_harness(_graph(), counters=FailingCounterStore(), record_events=False)

    await harness.machine.open_session("111")
    result = await harness.machine.handle_turn("111", "1")

    assert result.state_name == "done"
    assert [(fire.name, fire.value) for fire in harness.metrics.fired if fire.op == "max"] == [
        ("unique_users", 0),
        ("ussd_sessions", 0),
    ]
