from typing import Dict

from ..core.models import MetricDefinition


class MetricCatalog:
    """
    Metric definitions per resource, fetched once per setup.
    Validation, aggregation defaults and time-grain splitting all read from it.
    """

    def __init__(self, clients):
        self.clients = clients
        self._definitions: Dict[str, Dict[str, MetricDefinition]] = {}

    async def get(self, resource_id: str) -> Dict[str, MetricDefinition]:
        key = resource_id.lower()
        if key not in self._definitions:
            definitions = await self.clients.list_metric_definitions(resource_id)
            self._definitions[key] = {d.name: d for d in definitions}
        return self._definitions[key]

    def cached(self, resource_id: str) -> Dict[str, MetricDefinition]:
        """Definitions already fetched by get(); empty if never fetched."""
        return self._definitions.get(resource_id.lower(), {})
