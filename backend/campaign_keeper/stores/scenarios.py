"""Scenario store, plus the cross-campaign library used by the import picker."""

from pydantic import ValidationError

from campaign_keeper.client.errors import RemoteError
from campaign_keeper.schemas.scenario import ScenarioOut
from campaign_keeper.stores.base import EntityStore


class ScenarioStore(EntityStore[ScenarioOut]):
    table = "scenarios"
    record_type = ScenarioOut
    operations = EntityStore.operations + ("library",)

    def __init__(self, remote):
        super().__init__(remote)
        self.library: list[ScenarioOut] = []

    async def fetch_library(self) -> list[ScenarioOut]:
        """Load every scenario visible to the user, across all campaigns."""
        self._begin("library")
        try:
            rows = await self.remote.select(self.table, order=self.order_column)
            library = [self._parse(row) for row in rows]
        except (RemoteError, ValidationError) as exc:
            self._fail("library", exc)
            return self.library

        self.library = library
        self._finish("library")
        return self.library
