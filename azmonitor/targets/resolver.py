import asyncio
from typing import List, Optional

from ..core.exceptions import ResolutionError
from ..core.logging import get_logger
from ..core.models import Resource, ResourceGroupTarget, ResourceTarget

logger = get_logger(__name__)


class TargetResolver:
    """
    Expands resource group and subscription targets into one ResourceTarget
    per concrete resource of the templated type.
    """

    def __init__(self, clients):
        self.clients = clients

    async def resolve(
        self,
        resource_group_targets: List[ResourceGroupTarget],
        subscription_targets: List[Resource],
    ) -> List[ResourceTarget]:
        lookups = [
            (group.resource_group, template)
            for group in resource_group_targets
            for template in group.resources
        ]
        lookups += [(None, template) for template in subscription_targets]

        results = await asyncio.gather(
            *[self._expand(group, template) for group, template in lookups],
            return_exceptions=True,
        )

        targets: List[ResourceTarget] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            targets.extend(result)

        logger.info(
            f"Resolved {len(lookups)} templates into {len(targets)} resource targets",
            extra={"target_count": len(targets)},
        )
        return targets

    async def _expand(self, resource_group: Optional[str], template: Resource) -> List[ResourceTarget]:
        scope = f"resource group {resource_group}" if resource_group else "subscription"
        try:
            resources = await self.clients.list_resources(template.resource_type, resource_group)
        except Exception as e:
            raise ResolutionError(
                f"{scope}: error listing resources of type {template.resource_type}: {e}"
            ) from e

        resources = [r for r in resources if r.id]
        if not resources:
            raise ResolutionError(f"{scope}: no resources of type {template.resource_type} found")

        return [
            ResourceTarget(
                resource_id=r.id,
                metrics=list(template.metrics),
                aggregations=list(template.aggregations),
            )
            for r in resources
        ]
