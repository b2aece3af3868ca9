"""Auth-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)


class MagicLinkRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    redirect_to: str | None = None  # path or absolute URL the link lands on
    data: dict = Field(default_factory=dict)  # merged into user_metadata


class MagicLinkVerify(BaseModel):
    token: str


class Identity(BaseModel):
    id: str
    email: str
    user_metadata: dict = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Identity


class CampaignInvitation(BaseModel):
    """Invitation marker carried in a magic link's metadata."""
    campaign_id: str
    campaign_title: str = ""
    inviter_email: str = ""

    @classmethod
    def from_metadata(cls, metadata: dict | None) -> "CampaignInvitation | None":
        if not metadata or not metadata.get("campaign_invitation"):
            return None
        if not metadata.get("campaign_id"):
            return None
        return cls(
            campaign_id=metadata["campaign_id"],
            campaign_title=metadata.get("campaign_title", ""),
            inviter_email=metadata.get("inviter_email", ""),
        )

    def to_metadata(self) -> dict:
        return {"campaign_invitation": True, **self.model_dump()}


class ProfileOut(BaseModel):
    id: str
    created_at: datetime
    username: str
    email: str | None = None
    avatar_url: str | None = None

    model_config = {"from_attributes": True}


class KnownUser(BaseModel):
    """Row shape of the get_all_users server function."""
    id: str
    email: str
    username: str | None = None
    avatar_url: str | None = None
