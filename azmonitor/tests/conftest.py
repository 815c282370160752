"""
Shared fixtures: an in-memory stand-in for AzureClients and a small
subscription with virtual machines and a storage account.
"""

import asyncio
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

import pytest

from azmonitor.core.models import (
    AzureResource,
    MetricDefinition,
    MetricQueryResult,
    MetricSeries,
    MetricValue,
)
from azmonitor.utils.helpers import utc_now

SUBSCRIPTION = "sub-1"
VM_TYPE = "Microsoft.Compute/virtualMachines"
STORAGE_TYPE = "Microsoft.Storage/storageAccounts"


def resource_id(group: str, rtype: str, name: str) -> str:
    return f"/subscriptions/{SUBSCRIPTION}/resourceGroups/{group}/providers/{rtype}/{name}"


def definition(name, grain_minutes=1, primary="Average", supported=None, extra_grains=()):
    grains = [timedelta(minutes=grain_minutes)] + [timedelta(minutes=m) for m in extra_grains]
    return MetricDefinition(
        name=name,
        primary_aggregation=primary,
        supported_aggregations=list(supported or ["Average", "Count", "Maximum", "Minimum", "Total"]),
        time_grains=grains,
        unit="Count",
    )


class FakeAzureClients:
    """
    Same coroutines as AzureClients, answering from dictionaries.

    responses[resource_id] may be a MetricQueryResult, an exception to raise,
    or "hang" to never answer. Without an entry every requested metric gets
    one data point valued 1.0 for every requested aggregation.
    """

    def __init__(
        self,
        resources: Optional[Dict[Tuple[Optional[str], str], List[AzureResource]]] = None,
        definitions: Optional[Dict[str, object]] = None,
        responses: Optional[Dict[str, object]] = None,
    ):
        self.resources = resources or {}
        self.definitions = definitions or {}
        self.responses = responses or {}
        self.list_error: Optional[Exception] = None
        self.list_calls: List[Tuple[str, Optional[str]]] = []
        self.definition_calls: List[str] = []
        self.queries: List[dict] = []
        self.closed = False

    async def list_resources(self, resource_type, resource_group=None):
        self.list_calls.append((resource_type, resource_group))
        if self.list_error:
            raise self.list_error
        if resource_group is None:
            return [
                r for (group, rtype), items in self.resources.items() if rtype == resource_type
                for r in items
            ]
        return list(self.resources.get((resource_group, resource_type), []))

    async def list_metric_definitions(self, resource_id):
        self.definition_calls.append(resource_id)
        found = self.definitions.get(resource_id, [])
        if isinstance(found, Exception):
            raise found
        return list(found)

    async def query_metrics(self, resource_id, metric_names, aggregations, time_grain, timespan):
        self.queries.append({
            "resource_id": resource_id,
            "metric_names": list(metric_names),
            "aggregations": list(aggregations),
            "time_grain": time_grain,
            "timespan": timespan,
        })
        response = self.responses.get(resource_id)
        if isinstance(response, Exception):
            raise response
        if response == "hang":
            await asyncio.sleep(3600)
        if response is None:
            point = MetricValue(timestamp=utc_now(), **{a.lower(): 1.0 for a in aggregations})
            response = MetricQueryResult(
                resource_id=resource_id,
                metrics=[MetricSeries(name=m, unit="Percent", values=[point]) for m in metric_names],
                region="westeurope",
            )
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def make_definition():
    return definition


@pytest.fixture
def fake_clients_cls():
    return FakeAzureClients


@pytest.fixture
def vm_ids():
    return [resource_id("rg-web", VM_TYPE, "vm1"), resource_id("rg-web", VM_TYPE, "vm2")]


@pytest.fixture
def storage_id():
    return resource_id("rg-data", STORAGE_TYPE, "acct1")


@pytest.fixture
def azure(vm_ids, storage_id):
    """Two VMs in rg-web and one storage account in rg-data."""
    vm_metrics = [
        definition("Percentage CPU", 1),
        definition("Available Memory Bytes", 1),
        definition("Disk Read Bytes", 5, primary="Total", extra_grains=(15, 60)),
    ]
    storage_metrics = [
        definition("UsedCapacity", 60, supported=["Average"]),
        definition("Transactions", 1, primary="Total"),
    ]
    return FakeAzureClients(
        resources={
            ("rg-web", VM_TYPE): [
                AzureResource(id=vm_ids[0], name="vm1", type=VM_TYPE, location="westeurope"),
                AzureResource(id=vm_ids[1], name="vm2", type=VM_TYPE, location="westeurope"),
            ],
            ("rg-data", STORAGE_TYPE): [
                AzureResource(id=storage_id, name="acct1", type=STORAGE_TYPE, location="northeurope"),
            ],
        },
        definitions={
            vm_ids[0]: vm_metrics,
            vm_ids[1]: vm_metrics,
            storage_id: storage_metrics,
        },
    )
