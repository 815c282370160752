from typing import List, Optional, Tuple

from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from ..core.models import ResourceTarget
from .catalog import MetricCatalog

logger = get_logger(__name__)


class MetricsValidator:
    """
    Keeps only the metrics Azure defines for a target's resource.

    Unknown metric names are dropped and returned to the caller. A target
    left with no metric is dropped with a warning, or rejected when
    `strict` is set. A target configured without metrics gets every metric
    its resource defines.
    """

    def __init__(self, catalog: MetricCatalog, strict: bool = False):
        self.catalog = catalog
        self.strict = strict

    async def validate(self, target: ResourceTarget) -> Tuple[Optional[ResourceTarget], List[str]]:
        try:
            definitions = await self.catalog.get(target.resource_id)
        except Exception as e:
            raise ValidationError(
                f"resource target {target.resource_id}: error getting metric definitions: {e}"
            ) from e

        if not target.metrics:
            target.metrics = list(definitions)
            logger.debug(
                f"Resource target {target.resource_id} has no metrics configured, "
                f"using all {len(target.metrics)} defined metrics",
                extra={"resource_id": target.resource_id, "metric_count": len(target.metrics)},
            )

        # Azure matches metric names case-insensitively; keep its spelling
        by_lower = {name.lower(): name for name in definitions}
        valid: List[str] = []
        invalid: List[str] = []
        for metric in target.metrics:
            name = by_lower.get(metric.lower())
            if name is None:
                invalid.append(metric)
            elif name not in valid:
                valid.append(name)

        if invalid:
            logger.warning(
                f"Resource target {target.resource_id}: metrics not valid for this resource: "
                f"{', '.join(invalid)}",
                extra={"resource_id": target.resource_id},
            )

        if not valid:
            message = f"resource target {target.resource_id}: none of the metrics are valid"
            if self.strict:
                raise ValidationError(message)
            logger.warning(f"Dropping {message}", extra={"resource_id": target.resource_id})
            return None, invalid

        target.metrics = valid
        return target, invalid
