from __future__ import annotations
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import SwapStatus

class SwapRequestIn(BaseModel):
    target_id: int = Field(ge=1)
    message: Optional[str] = Field(None, max_length=1000)

class SwapDecisionIn(BaseModel):
    requester_id: int = Field(ge=1)

class SwapRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_id: int
    target_id: int
    status: SwapStatus
    message: Optional[str] = None
    created_at: datetime
    decided_at: Optional[datetime] = None
