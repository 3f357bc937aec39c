"""Switchboard command line: simulate a USSD session or inspect the flow."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from switchboard.app import SwitchboardApp
from switchboard.config import Settings, load_settings
from switchboard.errors import ConfigurationError
from switchboard.logging_utils import configure_logging
from switchboard.metrics import RecordingMetrics
from switchboard.types import InboundMessage

TIMEOUT_COMMAND = "!timeout"

app = typer.Typer(name="switchboard", help="USSD session engine for the Switchboard directory.", add_completion=False)
console = Console()

ConfigOption = Annotated[Path | None, typer.Option("--config", "-c", help="JSON settings file")]


def _settings(config: Path | None, **overrides: object) -> Settings:
    try:
        settings = load_settings(config, **overrides)
    except ConfigurationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    configure_logging(settings.log_level)
    return settings


@app.command()
def simulate(
    identity: Annotated[str, typer.Option("--identity", "-i", help="Address of the simulated phone")] = "255750000000",
    config: ConfigOption = None,
    qa: Annotated[bool, typer.Option("--qa", help="Turn on QA features")] = False,
) -> None:
    """Run one interactive USSD session in the terminal."""

    overrides: dict[str, object] = {"qa": True} if qa else {}
    settings = _settings(config, **overrides)
    asyncio.run(_simulate(settings, identity))


async def _simulate(settings: Settings, identity: str) -> None:
    metrics = RecordingMetrics(settings.metric_store)
    async with SwitchboardApp(settings, metrics_sink=metrics) as switchboard:
        result = await switchboard.handle_inbound(InboundMessage(identity=identity, kind="new"))
        while result is not None:
            console.print(result.prompt)
            if result.is_terminal:
                break
            reply = typer.prompt("", default="", show_default=False, prompt_suffix="> ")
            if reply == TIMEOUT_COMMAND:
                await switchboard.handle_inbound(InboundMessage(identity=identity, kind="close", possible_timeout=True))
                console.print("[yellow]session timed out[/yellow]")
                break
            result = await switchboard.handle_inbound(InboundMessage(identity=identity, content=reply))

    table = Table(title="metrics")
    table.add_column("op")
    table.add_column("name")
    table.add_column("value", justify="right")
    for fire in metrics.fired:
        table.add_row(fire.op, fire.name, f"{fire.value:g}")
    console.print(table)


@app.command()
def states(config: ConfigOption = None) -> None:
    """List the states of the configured flow."""

    settings = _settings(config)
    switchboard = SwitchboardApp(settings)
    graph = switchboard.graph
    table = Table(title=f"flow (initial: {graph.initial})")
    table.add_column("state")
    table.add_column("kind")
    table.add_column("targets")
    for state in graph:
        table.add_row(state.name, state.kind, ", ".join(dict.fromkeys(state.static_targets())))
    console.print(table)
    asyncio.run(switchboard.aclose())
