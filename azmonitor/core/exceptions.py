"""
azmonitor exception hierarchy.

SetupError and its subclasses stop initialization. CallError is raised for a
single target's metrics query and never crosses a task boundary during gather.
"""

from typing import Optional


class AzureMonitorError(Exception):
    """Base exception for azmonitor."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class SetupError(AzureMonitorError):
    """Raised when the receiver cannot be initialized."""


class ConfigError(SetupError):
    """Raised for invalid receiver configuration."""


class ClientCreationError(SetupError):
    """Raised when the authenticated Azure clients cannot be created."""


class ResolutionError(SetupError):
    """Raised when resource group or subscription targets cannot be expanded."""


class ValidationError(SetupError):
    """Raised when the metric definitions of a target cannot be checked."""


class SplitError(SetupError):
    """Raised when a target cannot be split by time grain or batch size."""


class CallError(AzureMonitorError):
    """Raised when the metrics query of one resource target fails."""

    def __init__(self, resource_id: str, message: str, cause: Optional[BaseException] = None) -> None:
        self.resource_id = resource_id
        self.cause = cause
        super().__init__(f"resource target {resource_id}: {message}")
