"""Game session store. Sessions are listed by play date, latest first."""

from campaign_keeper.schemas.session import SessionOut
from campaign_keeper.stores.base import EntityStore


class SessionStore(EntityStore[SessionOut]):
    table = "sessions"
    record_type = SessionOut
    order_column = "date"

    def for_scenario(self, scenario_id: str) -> list[SessionOut]:
        return [s for s in self.items if s.scenario_id == scenario_id]
