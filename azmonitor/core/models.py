"""
azmonitor domain models.

Target types describe what to collect, metadata types carry what Azure
reports about resources and metrics, and CollectedMetric / GatherResult carry
what one gather cycle produced.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .exceptions import CallError


AGGREGATION_TYPES = ("Average", "Count", "Maximum", "Minimum", "Total")

# Azure Monitor rejects metric queries naming more than 20 metrics
MAX_METRICS_PER_CALL = 20


# ─────────────────────────────────────────────────────────────
# Targets
# ─────────────────────────────────────────────────────────────

@dataclass
class Resource:
    """A resource template: every resource of this type gets these metrics."""
    resource_type: str
    metrics: List[str] = field(default_factory=list)
    aggregations: List[str] = field(default_factory=list)


@dataclass
class ResourceGroupTarget:
    resource_group: str
    resources: List[Resource] = field(default_factory=list)


@dataclass
class ResourceTarget:
    """
    One concrete resource to collect metrics from.

    `aggregations` holds the explicitly configured kinds for the whole target.
    `metric_aggregations` is filled during setup with the kinds requested for
    each metric, and `time_grain` is set by the time-grain split.
    """
    resource_id: str
    metrics: List[str] = field(default_factory=list)
    aggregations: List[str] = field(default_factory=list)
    time_grain: Optional[timedelta] = None
    metric_aggregations: Dict[str, List[str]] = field(default_factory=dict)

    def aggregations_for(self, metric: str) -> List[str]:
        return self.metric_aggregations.get(metric) or list(self.aggregations)

    def query_aggregations(self) -> List[str]:
        """Union of the per-metric aggregations, in first-seen order."""
        kinds: List[str] = []
        for metric in self.metrics:
            for kind in self.aggregations_for(metric):
                if kind not in kinds:
                    kinds.append(kind)
        return kinds

    def with_metrics(self, metrics: List[str], time_grain: Optional[timedelta] = None) -> "ResourceTarget":
        """Copy of this target restricted to `metrics`."""
        return ResourceTarget(
            resource_id=self.resource_id,
            metrics=list(metrics),
            aggregations=list(self.aggregations),
            time_grain=time_grain if time_grain is not None else self.time_grain,
            metric_aggregations={
                m: list(self.metric_aggregations[m])
                for m in metrics
                if m in self.metric_aggregations
            },
        )


@dataclass
class Targets:
    """Everything one receiver instance collects; rebuilt on every init."""
    resource_targets: List[ResourceTarget] = field(default_factory=list)
    resource_group_targets: List[ResourceGroupTarget] = field(default_factory=list)
    subscription_targets: List[Resource] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.resource_targets or self.resource_group_targets or self.subscription_targets)


# ─────────────────────────────────────────────────────────────
# Azure metadata
# ─────────────────────────────────────────────────────────────

@dataclass
class AzureResource:
    id: str
    name: str
    type: str
    location: Optional[str] = None


@dataclass
class MetricDefinition:
    name: str
    primary_aggregation: Optional[str] = None
    supported_aggregations: List[str] = field(default_factory=list)
    time_grains: List[timedelta] = field(default_factory=list)
    unit: Optional[str] = None
    namespace: Optional[str] = None

    @property
    def min_time_grain(self) -> Optional[timedelta]:
        return min(self.time_grains) if self.time_grains else None


@dataclass
class MetricValue:
    timestamp: datetime
    average: Optional[float] = None
    count: Optional[float] = None
    maximum: Optional[float] = None
    minimum: Optional[float] = None
    total: Optional[float] = None

    def get(self, aggregation: str) -> Optional[float]:
        return getattr(self, aggregation.lower(), None)


@dataclass
class MetricSeries:
    name: str
    unit: Optional[str] = None
    values: List[MetricValue] = field(default_factory=list)


@dataclass
class MetricQueryResult:
    resource_id: str
    metrics: List[MetricSeries] = field(default_factory=list)
    region: Optional[str] = None


# ─────────────────────────────────────────────────────────────
# Gather output
# ─────────────────────────────────────────────────────────────

@dataclass
class CollectedMetric:
    name: str
    fields: Dict[str, float]
    tags: Dict[str, str]
    timestamp: Optional[datetime] = None


@dataclass
class GatherResult:
    target_count: int = 0
    collected_count: int = 0
    not_collected: List[str] = field(default_factory=list)
    errors: List[CallError] = field(default_factory=list)
    duration_ms: Optional[float] = None

    @property
    def ok(self) -> bool:
        return not self.errors
