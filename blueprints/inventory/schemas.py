from __future__ import annotations
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from models import HostelBlock, BedType

# ---------- Rooms ----------
class RoomsChangeIn(BaseModel):
    block: HostelBlock
    count: int = Field(ge=1, strict=True)
    bed_type: BedType

class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: int
    bed_type: BedType
    available_beds: int

# ---------- Blocks ----------
class BlockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: HostelBlock
    total_rooms: int
    rooms: List[RoomOut]

class BedTypeSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rooms: int
    free_beds: int
    total_beds: int

class BlockSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    block: str
    total_rooms: int
    by_bed_type: dict[str, BedTypeSummaryOut]
