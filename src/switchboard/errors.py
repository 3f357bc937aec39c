"""Application-level exception types for Switchboard."""

from __future__ import annotations


class SwitchboardError(Exception):
    """Base exception for Switchboard."""


class ConfigurationError(SwitchboardError):
    """Raised when settings or plugin wiring are unusable."""


class FlowDefinitionError(SwitchboardError):
    """Raised when a state graph references states that do not exist."""


class StateHandlerError(SwitchboardError):
    """Raised when a state handler fails instead of resolving to a state name."""

    def __init__(self, state_name: str, error: BaseException) -> None:
        super().__init__(f"Handler for state '{state_name}' failed: {error!s}")
        self.state_name = state_name
        self.error = error


class DirectoryError(SwitchboardError):
    """Raised when the directory service rejects or fails a request."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def __str__(self) -> str:
        return f"<DirectoryError: {self.reason}>"
