"""Types for program documents."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

ProgramStatus = Literal["active", "paused", "draft", "archived"]

ProgramEventType = Literal["created", "edited", "activated", "paused", "weekly_review"]


class ProgramDocument(BaseModel):
    """A single version of a user's training program."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    version: int
    document: str
    status: ProgramStatus
    created_at: datetime
