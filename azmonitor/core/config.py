"""
Receiver configuration.

Loaded from a TOML file (or a plain dict with the same keys). Credentials fall
back to the standard Azure environment variables when the file leaves them
empty:

    AZURE_SUBSCRIPTION_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, AZURE_TENANT_ID
"""

import copy
import os
import tomllib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .exceptions import ConfigError
from .models import (
    AGGREGATION_TYPES,
    MAX_METRICS_PER_CALL,
    Resource,
    ResourceGroupTarget,
    ResourceTarget,
    Targets,
)


DESCRIPTION = "Collect Azure Monitor metrics using a managed identity or a service principal"

SAMPLE_CONFIG = """\
## Azure subscription to collect from (or AZURE_SUBSCRIPTION_ID)
subscription_id = "<<SUBSCRIPTION_ID>>"

## "managed_identity" (default) or "client_secret"
auth_method = "managed_identity"

## Service principal credentials, required for auth_method = "client_secret"
## (or AZURE_CLIENT_ID / AZURE_CLIENT_SECRET / AZURE_TENANT_ID).
## With a managed identity, client_id selects a user-assigned identity.
# client_id = "<<CLIENT_ID>>"
# client_secret = "<<CLIENT_SECRET>>"
# tenant_id = "<<TENANT_ID>>"

## Seconds one metrics query may take, and one whole gather cycle
# call_timeout = 30.0
# cycle_timeout = 120.0

## Query window length, in multiples of the metric time grain
# lookback_periods = 2

## Maximum in-flight metrics queries, 0 for no limit
# max_concurrency = 0

## Fail setup instead of dropping a target none of whose metrics are valid
# strict_metric_validation = false

## Explicit resources. resource_id may be relative to the subscription.
## Empty metrics collects every metric the resource defines; empty
## aggregations uses each metric's primary aggregation.
[[resource_target]]
resource_id = "resourceGroups/<<RESOURCE_GROUP>>/providers/Microsoft.Storage/storageAccounts/<<NAME>>"
metrics = ["UsedCapacity", "Transactions"]
aggregations = ["Average", "Total"]

## Every resource of a type inside a resource group
[[resource_group_target]]
resource_group = "<<RESOURCE_GROUP>>"

  [[resource_group_target.resource]]
  resource_type = "Microsoft.Compute/virtualMachines"
  metrics = ["Percentage CPU", "Available Memory Bytes"]
  aggregations = []

## Every resource of a type in the subscription
[[subscription_target]]
resource_type = "Microsoft.Storage/storageAccounts"
metrics = []
aggregations = []
"""

AUTH_METHODS = ("managed_identity", "client_secret")

_ENV_FALLBACKS = {
    "subscription_id": "AZURE_SUBSCRIPTION_ID",
    "client_id": "AZURE_CLIENT_ID",
    "client_secret": "AZURE_CLIENT_SECRET",
    "tenant_id": "AZURE_TENANT_ID",
}

_TARGET_KEYS = ("resource_target", "resource_group_target", "subscription_target")


def sample_config() -> str:
    return SAMPLE_CONFIG


def normalize_aggregations(names: List[str], where: str) -> List[str]:
    """Map aggregation names case-insensitively onto AGGREGATION_TYPES."""
    canonical = {a.lower(): a for a in AGGREGATION_TYPES}
    out: List[str] = []
    for name in names or []:
        kind = canonical.get(str(name).strip().lower())
        if kind is None:
            raise ConfigError(
                f"{where}: aggregation '{name}' is not one of {', '.join(AGGREGATION_TYPES)}"
            )
        if kind not in out:
            out.append(kind)
    return out


@dataclass
class MonitorConfig:
    subscription_id: str = ""
    auth_method: str = "managed_identity"
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    tenant_id: Optional[str] = None
    resource_targets: List[ResourceTarget] = field(default_factory=list)
    resource_group_targets: List[ResourceGroupTarget] = field(default_factory=list)
    subscription_targets: List[Resource] = field(default_factory=list)
    call_timeout: float = 30.0
    cycle_timeout: float = 120.0
    lookback_periods: int = 2
    max_concurrency: int = 0
    max_metrics_per_call: int = MAX_METRICS_PER_CALL
    strict_metric_validation: bool = False

    # ─── Loading ─────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], env: Optional[Mapping[str, str]] = None) -> "MonitorConfig":
        """Build and validate a config from TOML-shaped data."""
        env = os.environ if env is None else env
        known = {f for f in cls.__dataclass_fields__} | set(_TARGET_KEYS)
        known -= {"resource_targets", "resource_group_targets", "subscription_targets"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {
            k: v for k, v in data.items() if k not in _TARGET_KEYS
        }
        for key, var in _ENV_FALLBACKS.items():
            if not kwargs.get(key) and env.get(var):
                kwargs[key] = env[var]

        try:
            config = cls(
                resource_targets=[
                    _parse_resource_target(t, i) for i, t in enumerate(data.get("resource_target", []))
                ],
                resource_group_targets=[
                    _parse_resource_group_target(t, i) for i, t in enumerate(data.get("resource_group_target", []))
                ],
                subscription_targets=[
                    _parse_resource(t, f"subscription_target[{i}]")
                    for i, t in enumerate(data.get("subscription_target", []))
                ],
                **kwargs,
            )
        except (TypeError, AttributeError) as e:
            raise ConfigError(f"malformed configuration: {e}") from e

        config.validate()
        return config

    # ─── Validation ──────────────────────────────────────────

    def validate(self) -> None:
        if not self.subscription_id:
            raise ConfigError("subscription_id is empty or missing")

        if self.auth_method not in AUTH_METHODS:
            raise ConfigError(
                f"auth_method '{self.auth_method}' is not one of {', '.join(AUTH_METHODS)}"
            )
        if self.auth_method == "client_secret":
            missing = [
                k for k in ("client_id", "client_secret", "tenant_id") if not getattr(self, k)
            ]
            if missing:
                raise ConfigError(f"client_secret authentication requires {', '.join(missing)}")

        if Targets(self.resource_targets, self.resource_group_targets, self.subscription_targets).is_empty():
            raise ConfigError("no target to collect metrics from")

        for i, target in enumerate(self.resource_targets):
            if not target.resource_id:
                raise ConfigError(f"resource_target[{i}]: resource_id is empty or missing")

        for i, target in enumerate(self.resource_group_targets):
            if not target.resource_group:
                raise ConfigError(f"resource_group_target[{i}]: resource_group is empty or missing")
            if not target.resources:
                raise ConfigError(f"resource_group_target[{i}]: no resource to collect metrics from")
            for j, resource in enumerate(target.resources):
                if not resource.resource_type:
                    raise ConfigError(
                        f"resource_group_target[{i}].resource[{j}]: resource_type is empty or missing"
                    )

        for i, resource in enumerate(self.subscription_targets):
            if not resource.resource_type:
                raise ConfigError(f"subscription_target[{i}]: resource_type is empty or missing")

        if self.call_timeout <= 0 or self.cycle_timeout <= 0:
            raise ConfigError("call_timeout and cycle_timeout must be positive")
        if self.lookback_periods < 1:
            raise ConfigError("lookback_periods must be at least 1")
        if self.max_concurrency < 0:
            raise ConfigError("max_concurrency must not be negative")
        if not 1 <= self.max_metrics_per_call <= MAX_METRICS_PER_CALL:
            raise ConfigError(f"max_metrics_per_call must be between 1 and {MAX_METRICS_PER_CALL}")

    # ─── Targets ─────────────────────────────────────────────

    def build_targets(self) -> Targets:
        """
        Fresh copy of the configured targets with resource ids made absolute.
        Setup mutates targets, so each init gets its own copy.
        """
        resource_targets = []
        for target in self.resource_targets:
            t = copy.deepcopy(target)
            t.resource_id = self.qualify_resource_id(t.resource_id)
            resource_targets.append(t)
        return Targets(
            resource_targets=resource_targets,
            resource_group_targets=copy.deepcopy(self.resource_group_targets),
            subscription_targets=copy.deepcopy(self.subscription_targets),
        )

    def qualify_resource_id(self, resource_id: str) -> str:
        if resource_id.lower().startswith("/subscriptions/"):
            return resource_id
        return f"/subscriptions/{self.subscription_id}/{resource_id.lstrip('/')}"


def load_config(path: str, env: Optional[Mapping[str, str]] = None) -> MonitorConfig:
    """Read a TOML config file."""
    try:
        with open(path, "rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    return MonitorConfig.from_dict(data, env=env)


# ─── Parsing helpers ─────────────────────────────────────────

def _parse_resource_target(data: Mapping[str, Any], index: int) -> ResourceTarget:
    where = f"resource_target[{index}]"
    return ResourceTarget(
        resource_id=str(data.get("resource_id", "")).strip(),
        metrics=list(data.get("metrics", [])),
        aggregations=normalize_aggregations(data.get("aggregations", []), where),
    )


def _parse_resource(data: Mapping[str, Any], where: str) -> Resource:
    return Resource(
        resource_type=str(data.get("resource_type", "")).strip(),
        metrics=list(data.get("metrics", [])),
        aggregations=normalize_aggregations(data.get("aggregations", []), where),
    )


def _parse_resource_group_target(data: Mapping[str, Any], index: int) -> ResourceGroupTarget:
    where = f"resource_group_target[{index}]"
    return ResourceGroupTarget(
        resource_group=str(data.get("resource_group", "")).strip(),
        resources=[
            _parse_resource(r, f"{where}.resource[{j}]")
            for j, r in enumerate(data.get("resource", []))
        ],
    )
