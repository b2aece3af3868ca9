"""Game-session-related Pydantic schemas."""

from datetime import date as Date, datetime

from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    date: Date = Field(default_factory=Date.today)
    notes: str = ""
    campaign_id: str
    scenario_id: str | None = None


class SessionUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    date: Date | None = None
    notes: str | None = None
    scenario_id: str | None = None


class SessionOut(BaseModel):
    id: str
    created_at: datetime
    title: str
    date: Date
    notes: str
    campaign_id: str
    user_id: str
    scenario_id: str | None = None

    model_config = {"from_attributes": True}
