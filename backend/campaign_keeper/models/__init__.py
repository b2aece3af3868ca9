"""Database models package."""

from campaign_keeper.models.campaign import Campaign
from campaign_keeper.models.scenario import Scenario
from campaign_keeper.models.npc import Npc
from campaign_keeper.models.game_session import GameSession
from campaign_keeper.models.user import User, Profile

__all__ = ["Campaign", "Scenario", "Npc", "GameSession", "User", "Profile"]
