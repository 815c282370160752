"""
JSON shapes returned by the API and MCP surfaces.
"""

from typing import Any, Dict, List

from ..core.models import CollectedMetric, GatherResult, ResourceTarget
from ..utils.helpers import format_time_grain


def adapt_target(target: ResourceTarget) -> Dict[str, Any]:
    return {
        "resource_id": target.resource_id,
        "metrics": list(target.metrics),
        "aggregations": {m: target.aggregations_for(m) for m in target.metrics},
        "time_grain": format_time_grain(target.time_grain),
    }


def adapt_metric(metric: CollectedMetric) -> Dict[str, Any]:
    return {
        "name": metric.name,
        "fields": metric.fields,
        "tags": metric.tags,
        "timestamp": metric.timestamp.isoformat() if metric.timestamp else None,
    }


def adapt_gather_result(result: GatherResult, metrics: List[CollectedMetric]) -> Dict[str, Any]:
    return {
        "summary": {
            "target_count": result.target_count,
            "collected_count": result.collected_count,
            "not_collected_count": len(result.not_collected),
            "error_count": len(result.errors),
            "duration_ms": result.duration_ms,
        },
        "metrics": [adapt_metric(m) for m in metrics],
        "not_collected": list(result.not_collected),
        "errors": [
            {"resource_id": e.resource_id, "message": e.message}
            for e in result.errors
        ],
    }
