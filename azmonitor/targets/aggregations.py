from typing import Dict, List

from ..core.logging import get_logger
from ..core.models import MetricDefinition, ResourceTarget

logger = get_logger(__name__)

FALLBACK_AGGREGATION = "Average"


class AggregationAssigner:
    """Decides which aggregations are requested for each metric of a target."""

    def assign(self, target: ResourceTarget, definitions: Dict[str, MetricDefinition]) -> ResourceTarget:
        assigned: Dict[str, List[str]] = {}
        for metric in target.metrics:
            definition = definitions.get(metric)
            assigned[metric] = self._for_metric(target, metric, definition)
        target.metric_aggregations = assigned
        return target

    def _for_metric(self, target: ResourceTarget, metric: str, definition) -> List[str]:
        default = (definition.primary_aggregation if definition else None) or FALLBACK_AGGREGATION
        if not target.aggregations:
            return [default]

        supported = definition.supported_aggregations if definition else []
        if not supported:
            return list(target.aggregations)

        kinds = [a for a in target.aggregations if a in supported]
        if len(kinds) < len(target.aggregations):
            dropped = [a for a in target.aggregations if a not in supported]
            logger.info(
                f"Resource target {target.resource_id}: metric {metric} "
                f"does not support {', '.join(dropped)}",
                extra={"resource_id": target.resource_id},
            )
        return kinds or [default]
