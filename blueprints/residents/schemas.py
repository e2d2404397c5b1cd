from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import HostelBlock, BedType

class ResidentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_verified: bool
    block: Optional[HostelBlock] = None
    room_number: Optional[int] = None
    bed_type: Optional[BedType] = None

class AssignRoomIn(BaseModel):
    block: HostelBlock
    room_number: int = Field(ge=1)
