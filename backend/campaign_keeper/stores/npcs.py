"""NPC store."""

from campaign_keeper.schemas.npc import NpcOut
from campaign_keeper.stores.base import EntityStore


def matches(npc: NpcOut, query: str) -> bool:
    needle = query.lower()
    return needle in npc.name.lower() or needle in npc.description.lower()


class NpcStore(EntityStore[NpcOut]):
    table = "npcs"
    record_type = NpcOut

    def search(self, query: str) -> list[NpcOut]:
        """Case-insensitive filter on name or description; empty query keeps all."""
        if not query:
            return list(self.items)
        return [npc for npc in self.items if matches(npc, query)]
