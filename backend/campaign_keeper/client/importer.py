"""Copy scenarios from other campaigns into a target campaign.

Each source is fetched and re-inserted on its own: a failure is logged and
the loop moves on, and copies already made are kept.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from campaign_keeper.client.errors import RemoteError
from campaign_keeper.client.remote import RemoteDataService
from campaign_keeper.stores.scenarios import ScenarioStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportOutcome:
    source_id: str
    scenario_id: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ImportReport:
    outcomes: list[ImportOutcome] = field(default_factory=list)

    @property
    def imported(self) -> list[str]:
        """Ids of the new copies."""
        return [o.scenario_id for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[ImportOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


class ScenarioImporter:
    def __init__(self, remote: RemoteDataService, scenario_store: ScenarioStore | None = None):
        self.remote = remote
        self.scenario_store = scenario_store

    async def _copy(self, source_id: str, campaign_id: str) -> str:
        source = await self.remote.get("scenarios", source_id)
        copy = await self.remote.insert("scenarios", {
            "title": source["title"],
            "description": source["description"],
            # Stored document goes across as-is
            "content": source.get("content") or {},
            "campaign_id": campaign_id,
        })
        return copy["id"]

    async def import_scenarios(self, scenario_ids: Iterable[str], campaign_id: str) -> ImportReport:
        report = ImportReport()
        for source_id in scenario_ids:
            try:
                new_id = await self._copy(source_id, campaign_id)
            except RemoteError as exc:
                logger.warning(
                    "Failed to import scenario %s into campaign %s: %s", source_id, campaign_id, exc
                )
                report.outcomes.append(ImportOutcome(source_id, error=str(exc)))
                continue
            report.outcomes.append(ImportOutcome(source_id, scenario_id=new_id))

        if report.failed:
            logger.error(
                "Imported %d of %d scenarios into campaign %s",
                len(report.imported), len(report.outcomes), campaign_id,
            )
        if self.scenario_store is not None:
            await self.scenario_store.fetch_all(campaign_id)
        return report
