from typing import List, Set, Tuple

from ..core.logging import get_logger
from ..core.models import ResourceTarget

logger = get_logger(__name__)


def deduplicate(targets: List[ResourceTarget]) -> List[ResourceTarget]:
    """
    Remove (resource, metric, aggregation) tuples already requested by an
    earlier target. Explicit, resource group and subscription targets can
    name the same resource. Expects per-metric aggregations to be assigned.
    """
    seen: Set[Tuple[str, str, str]] = set()
    result: List[ResourceTarget] = []
    removed = 0

    for target in targets:
        rid = target.resource_id.lower()
        metrics: List[str] = []
        per_metric = {}
        for metric in target.metrics:
            kinds = [
                a for a in target.aggregations_for(metric)
                if (rid, metric.lower(), a) not in seen
            ]
            if not kinds:
                removed += 1
                continue
            for a in kinds:
                seen.add((rid, metric.lower(), a))
            metrics.append(metric)
            per_metric[metric] = kinds

        if not metrics:
            continue
        target.metrics = metrics
        target.metric_aggregations = per_metric
        result.append(target)

    if removed:
        logger.info(f"Removed {removed} duplicated metric requests")
    return result
