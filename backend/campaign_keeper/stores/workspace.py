"""Workspace - every store and workflow over one remote client.

This is the object the presentation layer receives. Stores never reach into
each other; cross-store effects (pruning a deleted campaign's children,
accepting an invitation) live here.
"""

import logging

from campaign_keeper.client.campaign_setup import CampaignSetup
from campaign_keeper.client.errors import RemoteError
from campaign_keeper.client.importer import ScenarioImporter
from campaign_keeper.client.membership import MembershipService
from campaign_keeper.client.remote import RemoteDataService
from campaign_keeper.schemas.campaign import CampaignOut
from campaign_keeper.stores.auth import AuthStore
from campaign_keeper.stores.campaigns import CampaignStore
from campaign_keeper.stores.npcs import NpcStore
from campaign_keeper.stores.scenarios import ScenarioStore
from campaign_keeper.stores.sessions import SessionStore

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(self, remote: RemoteDataService):
        self.remote = remote
        self.auth = AuthStore(remote)
        self.campaigns = CampaignStore(remote)
        self.scenarios = ScenarioStore(remote)
        self.npcs = NpcStore(remote)
        self.sessions = SessionStore(remote)
        self.membership = MembershipService(self)
        self.importer = ScenarioImporter(remote, self.scenarios)
        self.setup = CampaignSetup(self)

    @property
    def child_stores(self):
        return (self.scenarios, self.npcs, self.sessions)

    async def aclose(self) -> None:
        await self.remote.aclose()

    async def open_campaign(self, campaign_id: str) -> CampaignOut | None:
        """Select a campaign and load its scenarios, NPCs and sessions."""
        campaign = self.campaigns.get_by_id(campaign_id)
        if campaign is None:
            await self.campaigns.fetch_all()
            campaign = self.campaigns.get_by_id(campaign_id)
        if campaign is None:
            return None

        self.campaigns.set_current(campaign)
        for store in self.child_stores:
            await store.fetch_all(campaign_id)
        return campaign

    async def delete_campaign(self, campaign_id: str) -> bool:
        """Delete a campaign; its children are gone server-side, so drop them here too."""
        if not await self.campaigns.delete(campaign_id):
            return False
        for store in self.child_stores:
            store.discard(lambda record: record.campaign_id == campaign_id)
        self.scenarios.library = [s for s in self.scenarios.library if s.campaign_id != campaign_id]
        return True

    async def accept_invitation(self, url: str) -> CampaignOut | None:
        """Redeem a magic link and mark the signed-in user active in its campaign.

        Returns the updated campaign, or None when the link carries no
        invitation or the activation could not be saved.
        """
        invitation = await self.auth.process_magic_link(url)
        if invitation is None or self.auth.user is None:
            return None
        try:
            return await self.membership.activate_member(invitation.campaign_id, self.auth.user.email)
        except RemoteError as exc:
            logger.warning("Could not activate invitation to %s: %s", invitation.campaign_id, exc)
            return None
