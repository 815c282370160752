"""
azmonitor Core -- Domain layer.

NOTE: AzureMonitorReceiver is NOT imported here to avoid circular imports
(it depends on collectors and targets, which depend on core). Import it
directly:
    from azmonitor.core.receiver import AzureMonitorReceiver
"""

from .models import (
    Resource,
    ResourceGroupTarget,
    ResourceTarget,
    Targets,
    CollectedMetric,
    GatherResult,
)
from .config import MonitorConfig, load_config, sample_config
from .accumulator import Accumulator, MemoryAccumulator
from .exceptions import (
    AzureMonitorError,
    SetupError,
    ConfigError,
    ClientCreationError,
    ResolutionError,
    ValidationError,
    SplitError,
    CallError,
)
from .logging import get_logger, set_correlation_id, get_correlation_id, TimedOperation

__all__ = [
    "Resource",
    "ResourceGroupTarget",
    "ResourceTarget",
    "Targets",
    "CollectedMetric",
    "GatherResult",
    "MonitorConfig",
    "load_config",
    "sample_config",
    "Accumulator",
    "MemoryAccumulator",
    "AzureMonitorError",
    "SetupError",
    "ConfigError",
    "ClientCreationError",
    "ResolutionError",
    "ValidationError",
    "SplitError",
    "CallError",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "TimedOperation",
]
