"""Scenario-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from campaign_keeper.schemas.content import ScenarioContent


class ScenarioCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    campaign_id: str
    content: ScenarioContent = Field(default_factory=ScenarioContent)


class ScenarioUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1)
    content: ScenarioContent | None = None


class ScenarioOut(BaseModel):
    id: str
    created_at: datetime
    title: str
    description: str
    campaign_id: str
    user_id: str
    content: ScenarioContent

    model_config = {"from_attributes": True}
