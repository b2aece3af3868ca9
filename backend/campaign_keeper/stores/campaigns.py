"""Campaign store."""

from campaign_keeper.schemas.campaign import CampaignOut
from campaign_keeper.stores.base import EntityStore


class CampaignStore(EntityStore[CampaignOut]):
    table = "campaigns"
    record_type = CampaignOut
    scope_column = None  # visibility is decided by the data service
