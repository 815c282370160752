from datetime import timedelta
from typing import Dict, List

from ..core.exceptions import SplitError
from ..core.models import MAX_METRICS_PER_CALL, MetricDefinition, ResourceTarget
from ..utils.helpers import chunk_list


class TimeGrainSplitter:
    """
    One metrics query covers a single time grain. Metrics of a target are
    grouped by their smallest supported grain so none is coarsened to a
    neighbour's interval.
    """

    def split(self, target: ResourceTarget, definitions: Dict[str, MetricDefinition]) -> List[ResourceTarget]:
        groups: Dict[timedelta, List[str]] = {}
        for metric in target.metrics:
            definition = definitions.get(metric)
            if definition is None:
                raise SplitError(f"resource target {target.resource_id}: metric {metric} has no definition")
            grain = definition.min_time_grain
            if grain is None:
                raise SplitError(
                    f"resource target {target.resource_id}: metric {metric} reports no supported time grain"
                )
            groups.setdefault(grain, []).append(metric)

        return [
            target.with_metrics(metrics, time_grain=grain)
            for grain, metrics in sorted(groups.items())
        ]


class BatchSplitter:
    """Splits targets naming more metrics than one query accepts."""

    def __init__(self, max_metrics: int = MAX_METRICS_PER_CALL):
        if max_metrics < 1:
            raise SplitError(f"max metrics per call must be positive, got {max_metrics}")
        self.max_metrics = max_metrics

    def split(self, target: ResourceTarget) -> List[ResourceTarget]:
        if len(target.metrics) <= self.max_metrics:
            return [target]
        return [target.with_metrics(chunk) for chunk in chunk_list(target.metrics, self.max_metrics)]
