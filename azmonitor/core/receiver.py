"""
AzureMonitorReceiver — owns the resource targets of one configured run.

init() turns the configuration into the final, read-only tuple of collection
jobs; any failure there is fatal and nothing is collected. gather() runs one
collection cycle over that tuple and never raises for a single target.

Setup stages, in order:
  1. resource group targets -> resource targets
  2. subscription targets   -> resource targets
  3. metric validation against the resource's metric definitions
  4. per-metric aggregations
  5. duplicate (resource, metric, aggregation) removal
  6. split by minimum time grain
  7. split by maximum metrics per call
"""

import asyncio
from typing import List, Optional, Tuple

from ..collectors.azure.metrics import AzureMetricsCollector
from ..targets.aggregations import AggregationAssigner
from ..targets.catalog import MetricCatalog
from ..targets.deduplicator import deduplicate
from ..targets.resolver import TargetResolver
from ..targets.splitter import BatchSplitter, TimeGrainSplitter
from ..targets.validator import MetricsValidator
from .accumulator import Accumulator
from .config import MonitorConfig
from .exceptions import ClientCreationError, SetupError
from .logging import TimedOperation, get_logger, set_correlation_id
from .models import GatherResult, ResourceTarget

logger = get_logger(__name__)


def _wrap(error: SetupError, stage: str) -> SetupError:
    """Same error type, message prefixed with the failing stage."""
    return type(error)(f"{stage}: {error.message}")


class AzureMonitorReceiver:

    def __init__(self, config: MonitorConfig, clients):
        self.config = config
        self.clients = clients
        self._targets: Tuple[ResourceTarget, ...] = ()
        self._initialized = False
        self._collector = AzureMetricsCollector(
            clients,
            call_timeout=config.call_timeout,
            cycle_timeout=config.cycle_timeout,
            lookback_periods=config.lookback_periods,
            max_concurrency=config.max_concurrency,
        )

    @classmethod
    async def create(cls, config: MonitorConfig, creator=None) -> "AzureMonitorReceiver":
        """Authenticate through the configured client creator, then init()."""
        if creator is None:
            from ..providers.factory import ClientFactory
            creator = ClientFactory.from_config(config)

        try:
            clients = creator.create_clients(config.subscription_id)
        except SetupError:
            raise
        except Exception as e:
            raise ClientCreationError(f"error creating Azure clients: {e}") from e

        receiver = cls(config, clients)
        await receiver.init()
        return receiver

    @property
    def targets(self) -> Tuple[ResourceTarget, ...]:
        return self._targets

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ─── Setup ───────────────────────────────────────────────

    async def init(self) -> Tuple[ResourceTarget, ...]:
        """Build the final job list. Raises a SetupError subclass per failing stage."""
        self._initialized = False
        self._targets = ()

        with TimedOperation(logger, "init"):
            configured = self.config.build_targets()
            catalog = MetricCatalog(self.clients)
            resolver = TargetResolver(self.clients)

            targets: List[ResourceTarget] = list(configured.resource_targets)

            try:
                targets += await resolver.resolve(configured.resource_group_targets, [])
            except SetupError as e:
                raise _wrap(e, "error creating resource targets from resource group targets") from e

            try:
                targets += await resolver.resolve([], configured.subscription_targets)
            except SetupError as e:
                raise _wrap(e, "error creating resource targets from subscription targets") from e

            validator = MetricsValidator(catalog, strict=self.config.strict_metric_validation)
            validated = await asyncio.gather(
                *[validator.validate(t) for t in targets], return_exceptions=True
            )
            for outcome in validated:
                if isinstance(outcome, SetupError):
                    raise _wrap(outcome, "error checking resource targets metrics validation") from outcome
                if isinstance(outcome, BaseException):
                    raise outcome
            targets = [t for t, _ in validated if t is not None]

            assigner = AggregationAssigner()
            targets = [assigner.assign(t, catalog.cached(t.resource_id)) for t in targets]
            targets = deduplicate(targets)

            grain_splitter = TimeGrainSplitter()
            batch_splitter = BatchSplitter(self.config.max_metrics_per_call)
            final: List[ResourceTarget] = []
            try:
                for target in targets:
                    for by_grain in grain_splitter.split(target, catalog.cached(target.resource_id)):
                        final.extend(batch_splitter.split(by_grain))
            except SetupError as e:
                raise _wrap(e, "error splitting resource targets metrics") from e

            self._targets = tuple(final)
            self._initialized = True

        logger.debug(
            f"Total resource targets: {len(self._targets)}",
            extra={"target_count": len(self._targets)},
        )
        if not self._targets:
            logger.warning("No resource target left to collect metrics from")
        return self._targets

    # ─── Gather ──────────────────────────────────────────────

    async def gather(self, acc: Accumulator, correlation_id: Optional[str] = None) -> GatherResult:
        """Run one collection cycle. Per-target failures land in the result."""
        if not self._initialized:
            raise SetupError("receiver is not initialized")

        set_correlation_id(correlation_id)
        with TimedOperation(logger, "gather", target_count=len(self._targets)) as timer:
            result = await self._collector.collect(self._targets, acc)
        result.duration_ms = timer.duration_ms

        if result.errors:
            logger.warning(
                f"{len(result.errors)} of {result.target_count} resource targets failed",
                extra={"target_count": result.target_count},
            )
        return result

    async def close(self) -> None:
        close = getattr(self.clients, "close", None)
        if close:
            await close()
