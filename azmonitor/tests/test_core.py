"""
azmonitor Test Suite — Core Module Tests.

Covers:
    - Models (ResourceTarget, MetricDefinition, MetricValue)
    - Logging (get_logger, set_correlation_id, StructuredJSONFormatter, TimedOperation)
    - Accumulator (MemoryAccumulator)
    - Config (MonitorConfig, load_config, sample_config)
    - Utils (time grains, resource ids, chunk_list, concurrency limit)
"""

import asyncio
import inspect
import json
import logging
import threading
import time
import tomllib
import pytest
from datetime import datetime, timedelta, timezone

# ─────────────────────────────────────────────────────────────
# Models
# ─────────────────────────────────────────────────────────────

from azmonitor.core.models import (
    MetricDefinition,
    MetricValue,
    ResourceTarget,
    Targets,
)


class TestResourceTarget:
    def test_create_minimal(self):
        t = ResourceTarget(resource_id="/subscriptions/s/x")
        assert t.metrics == []
        assert t.aggregations == []
        assert t.time_grain is None

    def test_aggregations_for_prefers_per_metric(self):
        t = ResourceTarget(
            resource_id="r",
            metrics=["a", "b"],
            aggregations=["Average"],
            metric_aggregations={"a": ["Total"]},
        )
        assert t.aggregations_for("a") == ["Total"]
        assert t.aggregations_for("b") == ["Average"]

    def test_query_aggregations_union_in_order(self):
        t = ResourceTarget(
            resource_id="r",
            metrics=["a", "b", "c"],
            metric_aggregations={"a": ["Total"], "b": ["Average", "Total"], "c": ["Maximum"]},
        )
        assert t.query_aggregations() == ["Total", "Average", "Maximum"]

    def test_with_metrics_copies(self):
        t = ResourceTarget(
            resource_id="r",
            metrics=["a", "b"],
            time_grain=timedelta(minutes=1),
            metric_aggregations={"a": ["Total"], "b": ["Average"]},
        )
        part = t.with_metrics(["b"], time_grain=timedelta(minutes=5))
        assert part.metrics == ["b"]
        assert part.metric_aggregations == {"b": ["Average"]}
        assert part.time_grain == timedelta(minutes=5)
        part.metrics.append("z")
        assert t.metrics == ["a", "b"]

    def test_targets_is_empty(self):
        assert Targets().is_empty()
        assert not Targets(resource_targets=[ResourceTarget(resource_id="r")]).is_empty()


class TestMetricMetadata:
    def test_min_time_grain(self):
        d = MetricDefinition(name="x", time_grains=[timedelta(hours=1), timedelta(minutes=5)])
        assert d.min_time_grain == timedelta(minutes=5)

    def test_min_time_grain_none(self):
        assert MetricDefinition(name="x").min_time_grain is None

    def test_metric_value_get(self):
        v = MetricValue(timestamp=datetime.now(timezone.utc), average=2.5, total=None)
        assert v.get("Average") == 2.5
        assert v.get("Total") is None


# ─────────────────────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────────────────────

from azmonitor.core.logging import (
    get_logger,
    set_correlation_id,
    get_correlation_id,
    StructuredJSONFormatter,
    TimedOperation,
)


class TestLogging:
    def test_get_logger_returns_logger(self):
        logger = get_logger("test_module")
        assert logger.name == "azmonitor.test_module"

    def test_get_logger_preserves_namespace(self):
        logger = get_logger("azmonitor.core.test")
        assert logger.name == "azmonitor.core.test"

    def test_correlation_id_lifecycle(self):
        cid = set_correlation_id("cycle-123")
        assert cid == "cycle-123"
        assert get_correlation_id() == "cycle-123"

    def test_correlation_id_auto_generate(self):
        cid = set_correlation_id()
        assert len(cid) == 12

    def test_json_formatter_output(self):
        formatter = StructuredJSONFormatter()
        record = logging.LogRecord(
            name="test", level=logging.WARNING, pathname="", lineno=0,
            msg="metric dropped", args=(), exc_info=None,
        )
        record.resource_id = "/subscriptions/s/vm"
        data = json.loads(formatter.format(record))
        assert data["message"] == "metric dropped"
        assert data["level"] == "WARNING"
        assert data["resource_id"] == "/subscriptions/s/vm"
        assert "timestamp" in data

    def test_timed_operation_records_duration(self):
        logger = get_logger("test_timer")
        with TimedOperation(logger, "test_op") as t:
            time.sleep(0.01)
        assert t.duration_ms > 0

    def test_timed_operation_does_not_swallow(self):
        logger = get_logger("test_timer")
        with pytest.raises(ValueError):
            with TimedOperation(logger, "failing_op"):
                raise ValueError("boom")


# ─────────────────────────────────────────────────────────────
# Accumulator
# ─────────────────────────────────────────────────────────────

from azmonitor.core.accumulator import MemoryAccumulator


class TestMemoryAccumulator:
    def test_records_fields_and_errors(self):
        acc = MemoryAccumulator()
        acc.add_fields("m", {"average": 1.0}, {"resource_name": "vm1"})
        acc.add_error(RuntimeError("x"))
        assert acc.metrics[0].name == "m"
        assert acc.metrics[0].fields == {"average": 1.0}
        assert len(acc.errors) == 1

    def test_concurrent_writes(self):
        acc = MemoryAccumulator()

        def write(n):
            for i in range(200):
                acc.add_fields(f"m{n}", {"total": float(i)}, {})

        threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()
        assert len(acc.metrics) == 1600

    def test_clear(self):
        acc = MemoryAccumulator()
        acc.add_fields("m", {}, {})
        acc.clear()
        assert acc.metrics == []


# ─────────────────────────────────────────────────────────────
# Config
# ─────────────────────────────────────────────────────────────

from azmonitor.core.config import MonitorConfig, load_config, sample_config
from azmonitor.core.exceptions import ConfigError, SetupError


def _config_data(**overrides):
    data = {
        "subscription_id": "sub-1",
        "resource_target": [
            {
                "resource_id": "resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/acct",
                "metrics": ["UsedCapacity"],
                "aggregations": ["average", "TOTAL"],
            }
        ],
        "resource_group_target": [
            {
                "resource_group": "rg-web",
                "resource": [{"resource_type": "Microsoft.Compute/virtualMachines", "metrics": ["Percentage CPU"]}],
            }
        ],
        "subscription_target": [{"resource_type": "Microsoft.Storage/storageAccounts"}],
    }
    data.update(overrides)
    return data


class TestMonitorConfig:
    def test_from_dict(self):
        config = MonitorConfig.from_dict(_config_data(), env={})
        assert config.subscription_id == "sub-1"
        assert config.auth_method == "managed_identity"
        assert config.resource_targets[0].aggregations == ["Average", "Total"]
        assert config.resource_group_targets[0].resources[0].metrics == ["Percentage CPU"]
        assert config.subscription_targets[0].aggregations == []
        assert config.max_metrics_per_call == 20

    def test_env_fallback_for_credentials(self):
        data = _config_data(subscription_id="", auth_method="client_secret")
        env = {
            "AZURE_SUBSCRIPTION_ID": "env-sub",
            "AZURE_CLIENT_ID": "cid",
            "AZURE_CLIENT_SECRET": "secret",
            "AZURE_TENANT_ID": "tid",
        }
        config = MonitorConfig.from_dict(data, env=env)
        assert config.subscription_id == "env-sub"
        assert config.client_secret == "secret"

    def test_file_value_wins_over_env(self):
        config = MonitorConfig.from_dict(_config_data(), env={"AZURE_SUBSCRIPTION_ID": "env-sub"})
        assert config.subscription_id == "sub-1"

    def test_missing_subscription(self):
        with pytest.raises(ConfigError, match="subscription_id"):
            MonitorConfig.from_dict(_config_data(subscription_id=""), env={})

    def test_no_targets(self):
        data = {"subscription_id": "sub-1"}
        with pytest.raises(ConfigError, match="no target"):
            MonitorConfig.from_dict(data, env={})

    def test_invalid_aggregation(self):
        data = _config_data()
        data["resource_target"][0]["aggregations"] = ["Median"]
        with pytest.raises(ConfigError, match="Median"):
            MonitorConfig.from_dict(data, env={})

    def test_empty_resource_id(self):
        data = _config_data()
        data["resource_target"][0]["resource_id"] = ""
        with pytest.raises(ConfigError, match="resource_id"):
            MonitorConfig.from_dict(data, env={})

    def test_resource_group_without_resources(self):
        data = _config_data()
        data["resource_group_target"][0]["resource"] = []
        with pytest.raises(ConfigError, match="no resource"):
            MonitorConfig.from_dict(data, env={})

    def test_empty_resource_type(self):
        data = _config_data(subscription_target=[{"resource_type": ""}])
        with pytest.raises(ConfigError, match="resource_type"):
            MonitorConfig.from_dict(data, env={})

    def test_client_secret_requires_credentials(self):
        with pytest.raises(ConfigError, match="client_secret"):
            MonitorConfig.from_dict(_config_data(auth_method="client_secret"), env={})

    def test_unknown_auth_method(self):
        with pytest.raises(ConfigError, match="auth_method"):
            MonitorConfig.from_dict(_config_data(auth_method="password"), env={})

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="resource_targets"):
            MonitorConfig.from_dict(_config_data(resource_targets=[]), env={})

    def test_max_metrics_per_call_bounds(self):
        with pytest.raises(ConfigError):
            MonitorConfig.from_dict(_config_data(max_metrics_per_call=21), env={})

    def test_config_error_is_setup_error(self):
        assert issubclass(ConfigError, SetupError)

    def test_build_targets_qualifies_relative_ids(self):
        config = MonitorConfig.from_dict(_config_data(), env={})
        targets = config.build_targets()
        assert targets.resource_targets[0].resource_id == (
            "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/acct"
        )

    def test_build_targets_keeps_absolute_ids(self):
        config = MonitorConfig.from_dict(_config_data(), env={})
        assert config.qualify_resource_id("/subscriptions/other/x") == "/subscriptions/other/x"

    def test_build_targets_returns_fresh_copies(self):
        config = MonitorConfig.from_dict(_config_data(), env={})
        first = config.build_targets()
        first.resource_targets[0].metrics.append("Extra")
        second = config.build_targets()
        assert second.resource_targets[0].metrics == ["UsedCapacity"]
        assert config.resource_targets[0].resource_id.startswith("resourceGroups/")

    def test_load_config(self, tmp_path):
        path = tmp_path / "azmonitor.toml"
        path.write_text(
            'subscription_id = "sub-1"\n'
            "[[subscription_target]]\n"
            'resource_type = "Microsoft.Compute/virtualMachines"\n'
            'metrics = ["Percentage CPU"]\n'
        )
        config = load_config(str(path), env={})
        assert config.subscription_targets[0].metrics == ["Percentage CPU"]

    def test_load_config_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read config"):
            load_config(str(tmp_path / "missing.toml"), env={})

    def test_sample_config_is_valid(self):
        data = tomllib.loads(sample_config())
        config = MonitorConfig.from_dict(data, env={})
        assert len(config.resource_targets) == 1
        assert config.resource_group_targets[0].resources[0].resource_type == "Microsoft.Compute/virtualMachines"


# ─────────────────────────────────────────────────────────────
# Utils
# ─────────────────────────────────────────────────────────────

from azmonitor.utils.helpers import (
    utc_now,
    iso_now,
    format_time_grain,
    safe_float,
    parse_resource_id,
    sanitize_name,
    chunk_list,
    with_concurrency_limit,
)


class TestDateHelpers:
    def test_utc_now_is_timezone_aware(self):
        assert utc_now().tzinfo is not None

    def test_iso_now(self):
        assert "T" in iso_now()

    @pytest.mark.parametrize("grain,expected", [
        (timedelta(minutes=1), "PT1M"),
        (timedelta(minutes=5), "PT5M"),
        (timedelta(hours=1), "PT1H"),
        (timedelta(hours=12), "PT12H"),
        (timedelta(days=1), "P1D"),
        (None, None),
    ])
    def test_format_time_grain(self, grain, expected):
        assert format_time_grain(grain) == expected


class TestResourceIds:
    def test_parse_resource_id(self):
        info = parse_resource_id(
            "/subscriptions/s1/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/vm1"
        )
        assert info == {
            "subscription_id": "s1",
            "resource_group": "rg",
            "namespace": "Microsoft.Compute/virtualMachines",
            "resource_name": "vm1",
        }

    def test_parse_nested_resource_id(self):
        info = parse_resource_id(
            "/subscriptions/s1/resourceGroups/rg/providers/Microsoft.Sql/servers/srv/databases/db1"
        )
        assert info["namespace"] == "Microsoft.Sql/servers/databases"
        assert info["resource_name"] == "db1"

    def test_parse_extension_resource_id(self):
        info = parse_resource_id(
            "/subscriptions/s1/resourceGroups/rg/providers/Microsoft.Compute/virtualMachines/vm1"
            "/providers/Microsoft.Insights/diagnosticSettings/ds1"
        )
        assert info["namespace"] == "Microsoft.Insights/diagnosticSettings"
        assert info["resource_name"] == "ds1"

    def test_parse_case_insensitive_segments(self):
        info = parse_resource_id("/SUBSCRIPTIONS/s1/resourcegroups/RG/providers/Ns/type/name")
        assert info["subscription_id"] == "s1"
        assert info["resource_group"] == "RG"

    def test_sanitize_name(self):
        assert sanitize_name("azure_monitor", "Microsoft.Compute/virtualMachines", "Percentage CPU") == (
            "azure_monitor_microsoft_compute_virtualmachines_percentage_cpu"
        )

    def test_safe_float(self):
        assert safe_float("3.5") == 3.5
        assert safe_float(None) is None
        assert safe_float("x", default=0.0) == 0.0


class TestChunkList:
    def test_basic_chunking(self):
        assert chunk_list([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty_list(self):
        assert chunk_list([], 5) == []


class TestConcurrencyLimit:
    @pytest.mark.asyncio
    async def test_limit_bounds_in_flight(self):
        running = 0
        peak = 0

        async def job():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*with_concurrency_limit([job() for _ in range(10)], limit=3))
        assert peak == 3

    @pytest.mark.asyncio
    async def test_zero_means_unlimited(self):
        async def job(n):
            return n

        coros = with_concurrency_limit([job(n) for n in range(4)], limit=0)
        assert await asyncio.gather(*coros) == [0, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_closes_its_coroutine(self):
        first = asyncio.sleep(1)
        second = asyncio.sleep(1)
        tasks = [asyncio.create_task(c) for c in with_concurrency_limit([first, second], limit=1)]
        await asyncio.sleep(0.01)

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        assert inspect.getcoroutinestate(second) == inspect.CORO_CLOSED
