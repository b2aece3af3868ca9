"""NPC-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

# Traits a freshly created NPC starts with
DEFAULT_TRAIT_KEYS = ("Appearance", "Personality", "Motivation")


class Trait(BaseModel):
    key: str = ""
    value: str = ""


def default_traits() -> list[Trait]:
    return [Trait(key=key) for key in DEFAULT_TRAIT_KEYS]


class NpcCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    campaign_id: str
    image_url: str | None = None
    traits: list[Trait] = Field(default_factory=default_traits)


class NpcUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)
    image_url: str | None = None
    traits: list[Trait] | None = None


class NpcOut(BaseModel):
    id: str
    created_at: datetime
    name: str
    description: str
    campaign_id: str
    user_id: str
    image_url: str | None = None
    traits: list[Trait] = []

    model_config = {"from_attributes": True}
