"""
AzureMetricsCollector — one metrics query per resource target, concurrently.

Failures are isolated per target: a failed or timed out query becomes one
CallError in the cycle's result and on the accumulator's error channel, and
never cancels sibling queries. collect() returns once every query finished or
the cycle deadline passed.
"""

import asyncio
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple

from ...core.accumulator import Accumulator
from ...core.exceptions import CallError
from ...core.models import (
    CollectedMetric,
    GatherResult,
    MetricQueryResult,
    MetricSeries,
    MetricValue,
    ResourceTarget,
)
from ...utils.helpers import parse_resource_id, sanitize_name, utc_now, with_concurrency_limit
from ..base import BaseCollector

MEASUREMENT_PREFIX = "azure_monitor"
DEFAULT_TIME_GRAIN = timedelta(minutes=1)


class AzureMetricsCollector(BaseCollector):
    def __init__(
        self,
        clients,
        call_timeout: float = 30.0,
        cycle_timeout: float = 120.0,
        lookback_periods: int = 2,
        max_concurrency: int = 0,
    ):
        super().__init__("azure")
        self.clients = clients
        self.call_timeout = call_timeout
        self.cycle_timeout = cycle_timeout
        self.lookback_periods = lookback_periods
        self.max_concurrency = max_concurrency

    async def collect(self, targets: Sequence[ResourceTarget], acc: Accumulator) -> GatherResult:
        result = GatherResult(target_count=len(targets))
        if not targets:
            return result

        coros = [self._collect_target(target, acc, result) for target in targets]
        tasks = [asyncio.create_task(c) for c in with_concurrency_limit(coros, self.max_concurrency)]

        done, pending = await asyncio.wait(tasks, timeout=self.cycle_timeout)

        for task, target in zip(tasks, targets):
            if task in done and not task.cancelled() and task.exception() is not None:
                error = task.exception()
                self._record_error(
                    CallError(target.resource_id, f"unexpected error: {error}", cause=error),
                    acc,
                    result,
                )

        if pending:
            for task, target in zip(tasks, targets):
                if task in pending:
                    task.cancel()
                    self._record_error(
                        CallError(target.resource_id, f"gather cycle deadline of {self.cycle_timeout}s exceeded"),
                        acc,
                        result,
                    )
            await asyncio.gather(*pending, return_exceptions=True)

        return result

    # ─── Per target ──────────────────────────────────────────

    async def _collect_target(self, target: ResourceTarget, acc: Accumulator, result: GatherResult) -> None:
        self.logger.debug(
            f"Collecting metrics for resource target {target.resource_id}",
            extra={"resource_id": target.resource_id, "metric_count": len(target.metrics)},
        )
        grain = target.time_grain or DEFAULT_TIME_GRAIN
        end = utc_now()
        start = end - grain * self.lookback_periods

        try:
            response = await asyncio.wait_for(
                self.clients.query_metrics(
                    target.resource_id,
                    list(target.metrics),
                    target.query_aggregations(),
                    grain,
                    (start, end),
                ),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError as e:
            self._record_error(
                CallError(target.resource_id, f"metrics query timed out after {self.call_timeout}s", cause=e),
                acc,
                result,
            )
            return
        except Exception as e:
            self._record_error(
                CallError(target.resource_id, f"error collecting metrics: {e}", cause=e),
                acc,
                result,
            )
            return

        try:
            collected, not_collected = self.to_collected_metrics(target, response)
        except Exception as e:
            self._record_error(
                CallError(target.resource_id, f"error reading metrics response: {e}", cause=e),
                acc,
                result,
            )
            return

        for metric in collected:
            acc.add_fields(metric.name, metric.fields, metric.tags, metric.timestamp)
        result.collected_count += len(collected)

        for metric_id in not_collected:
            self.logger.info(
                f"Did not get any metric value from Azure Monitor API for the metric ID {metric_id}",
                extra={"resource_id": target.resource_id},
            )
        result.not_collected.extend(not_collected)

    def _record_error(self, error: CallError, acc: Accumulator, result: GatherResult) -> None:
        self._handle_error(f"collect {error.resource_id}", error)
        result.errors.append(error)
        acc.add_error(error)

    # ─── Response mapping ────────────────────────────────────

    def to_collected_metrics(
        self, target: ResourceTarget, response: MetricQueryResult
    ) -> Tuple[List[CollectedMetric], List[str]]:
        """
        One CollectedMetric per requested metric that has a data point in the
        window; the ids of the others are returned as not collected.
        """
        info = parse_resource_id(target.resource_id)
        tags = {
            "subscription_id": info["subscription_id"],
            "resource_group": info["resource_group"],
            "namespace": info["namespace"],
            "resource_name": info["resource_name"],
        }
        if response.region:
            tags["resource_region"] = response.region

        returned = {series.name.lower(): series for series in response.metrics}
        collected: List[CollectedMetric] = []
        not_collected: List[str] = []

        for metric in target.metrics:
            kinds = target.aggregations_for(metric)
            series = returned.get(metric.lower())
            point = _latest_point(series, kinds) if series else None
            if point is None:
                not_collected.append(f"{target.resource_id}/metrics/{metric}")
                continue

            fields = {}
            for kind in kinds:
                value = point.get(kind)
                if value is not None:
                    fields[kind.lower()] = float(value)

            metric_tags = dict(tags)
            if series.unit:
                metric_tags["unit"] = series.unit

            collected.append(CollectedMetric(
                name=sanitize_name(MEASUREMENT_PREFIX, info["namespace"], metric),
                fields=fields,
                tags=metric_tags,
                timestamp=point.timestamp,
            ))

        return collected, not_collected


def _latest_point(series: MetricSeries, kinds: List[str]) -> Optional[MetricValue]:
    """Most recent data point carrying a value for any of `kinds`."""
    for point in sorted(series.values, key=lambda p: p.timestamp, reverse=True):
        if any(point.get(kind) is not None for kind in kinds):
            return point
    return None
