"""Types for weights profiles."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TriggerType = Literal["initial_inference", "session_complete", "weekly_review", "catch_up"]


class WeightsEntry(BaseModel):
    """Estimated working load for one movement on one piece of equipment."""

    model_config = ConfigDict(extra="ignore")

    equipment: str | None = None
    movement: str
    load: float | None = None
    load_unit: str | None = None
    confidence: str | None = None


class WeightsProfileRecord(BaseModel):
    """One immutable version of a user's weights profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    version: int
    entries: list[WeightsEntry] = Field(default_factory=list)
    trigger_type: TriggerType
    trigger_session_id: str | None = None
    created_at: datetime
