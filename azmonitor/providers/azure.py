"""
Azure Provider: metadata and metrics access through the async management SDK.

AzureClients is the only place that touches the SDK. Calls run on the event
loop, so a per-call timeout measures the call itself and concurrent queries
are limited only by the caller.
"""
from datetime import datetime, timedelta
from typing import Any, List, Optional, Tuple

from azure.mgmt.monitor.aio import MonitorManagementClient
from azure.mgmt.resource.resources.aio import ResourceManagementClient

from ..core.logging import get_logger
from ..core.models import (
    AzureResource,
    MetricDefinition,
    MetricQueryResult,
    MetricSeries,
    MetricValue,
)
from ..utils.helpers import safe_float

logger = get_logger(__name__)


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def _localized(name: Any) -> str:
    # LocalizableString carries the invariant name in .value
    return getattr(name, "value", None) or str(name)


def escape_metric_name(name: str) -> str:
    """The metricnames parameter is comma separated; Azure reads %2 as a literal comma."""
    return name.replace(",", "%2")


def to_metric_definition(sdk_definition: Any) -> MetricDefinition:
    return MetricDefinition(
        name=_localized(sdk_definition.name),
        primary_aggregation=_enum_value(sdk_definition.primary_aggregation_type),
        supported_aggregations=[
            _enum_value(a) for a in (sdk_definition.supported_aggregation_types or [])
        ],
        time_grains=[
            a.time_grain
            for a in (sdk_definition.metric_availabilities or [])
            if a.time_grain is not None
        ],
        unit=_enum_value(sdk_definition.unit),
        namespace=sdk_definition.namespace,
    )


def to_query_result(resource_id: str, response: Any) -> MetricQueryResult:
    series = []
    for metric in response.value or []:
        values = [
            MetricValue(
                timestamp=point.time_stamp,
                average=safe_float(point.average),
                count=safe_float(point.count),
                maximum=safe_float(point.maximum),
                minimum=safe_float(point.minimum),
                total=safe_float(point.total),
            )
            for element in (metric.timeseries or [])
            for point in (element.data or [])
        ]
        series.append(MetricSeries(
            name=_localized(metric.name),
            unit=_enum_value(metric.unit),
            values=values,
        ))

    return MetricQueryResult(
        resource_id=resource_id,
        metrics=series,
        region=getattr(response, "resourceregion", None),
    )


class AzureClients:
    """
    Authenticated handle for one subscription.

    `resources` and `monitor` default to the SDK clients built from
    `credential`; passing them in replaces the SDK.
    """

    def __init__(self, subscription_id: str, credential: Any, resources=None, monitor=None):
        self.subscription_id = subscription_id
        self.credential = credential
        if resources is None:
            resources = ResourceManagementClient(credential, subscription_id)
        if monitor is None:
            monitor = MonitorManagementClient(credential, subscription_id)
        self.resources = resources
        self.monitor = monitor

    # ─── Metadata ────────────────────────────────────────────

    async def list_resources(self, resource_type: str, resource_group: Optional[str] = None) -> List[AzureResource]:
        query = f"resourceType eq '{resource_type}'"
        if resource_group:
            pages = self.resources.resources.list_by_resource_group(resource_group, filter=query)
        else:
            pages = self.resources.resources.list(filter=query)

        found = [
            AzureResource(id=r.id, name=r.name, type=r.type, location=r.location)
            async for r in pages
        ]
        logger.debug(
            f"[Azure] {len(found)} resources of type {resource_type} "
            f"in {resource_group or 'subscription ' + self.subscription_id}"
        )
        return found

    async def list_metric_definitions(self, resource_id: str) -> List[MetricDefinition]:
        return [
            to_metric_definition(d)
            async for d in self.monitor.metric_definitions.list(resource_id)
        ]

    # ─── Metrics ─────────────────────────────────────────────

    async def query_metrics(
        self,
        resource_id: str,
        metric_names: List[str],
        aggregations: List[str],
        time_grain: timedelta,
        timespan: Tuple[datetime, datetime],
    ) -> MetricQueryResult:
        start, end = timespan
        response = await self.monitor.metrics.list(
            resource_id,
            timespan=f"{start.isoformat()}/{end.isoformat()}",
            interval=time_grain,
            metricnames=",".join(escape_metric_name(n) for n in metric_names),
            aggregation=",".join(aggregations),
        )
        return to_query_result(resource_id, response)

    async def close(self) -> None:
        for client in (self.resources, self.monitor, self.credential):
            close = getattr(client, "close", None)
            if close:
                await close()
