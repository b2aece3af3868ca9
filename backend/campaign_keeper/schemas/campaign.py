"""Campaign-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

MemberRole = Literal["player", "game_master", "spectator"]
MemberStatus = Literal["invited", "active"]


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class Member(BaseModel):
    """A roster entry. The email is the member's identity within a campaign."""
    email: str
    role: MemberRole = "player"
    status: MemberStatus = "invited"


class CampaignCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    image_url: str | None = None
    members: list[Member] | None = None
    imported_scenarios: list[str] | None = None


class CampaignUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)
    image_url: str | None = None
    members: list[Member] | None = None
    imported_scenarios: list[str] | None = None


class CampaignOut(BaseModel):
    id: str
    created_at: datetime
    title: str
    description: str
    user_id: str
    image_url: str | None = None
    members: list[Member] | None = None
    imported_scenarios: list[str] | None = None
    version: int = 1

    model_config = {"from_attributes": True}

    @property
    def roster(self) -> list[Member]:
        return list(self.members or [])

    def find_member(self, email: str) -> Member | None:
        email = normalize_email(email)
        for member in self.roster:
            if normalize_email(member.email) == email:
                return member
        return None
