"""Switchboard - USSD session engine for the Switchboard health worker directory."""

from .app import SwitchboardApp
from .config import Settings, load_settings
from .machine import StateMachine, TurnContext
from .pipeline import EventPipeline
from .states import Choice, FreeInputState, MenuState, StateGraph, TerminalState

__version__ = "0.1.0"

__all__ = [
    "Choice",
    "EventPipeline",
    "FreeInputState",
    "MenuState",
    "Settings",
    "StateGraph",
    "StateMachine",
    "SwitchboardApp",
    "TerminalState",
    "TurnContext",
    "load_settings",
]
