"""Pluggy hook namespace and hook specifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from switchboard.config import Settings
    from switchboard.pipeline import EventPipeline
    from switchboard.states import StateGraph

SWITCHBOARD_HOOK_NAMESPACE = "switchboard"
hookspec = pluggy.HookspecMarker(SWITCHBOARD_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(SWITCHBOARD_HOOK_NAMESPACE)


class SwitchboardHookSpecs:
    """Hook contract for deployments extending Switchboard."""

    @hookspec(firstresult=True)
    def provide_flow(self, settings: Settings) -> StateGraph | None:
        """Provide the conversation graph served by this deployment."""

    @hookspec
    def register_reactions(self, pipeline: EventPipeline, settings: Settings) -> None:
        """Register lifecycle reactions onto the event pipeline."""
