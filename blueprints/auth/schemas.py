from __future__ import annotations
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from models import HostelBlock, BedType

class AdminSignupIn(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6)
    admin_key: str

class AdminLoginIn(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)

class ResidentSignupIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6)
    block: HostelBlock
    bed_type: Optional[BedType] = None
    room_number: int = Field(ge=1)

class ResidentLoginIn(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

class PhoneIn(BaseModel):
    phone: str = Field(pattern=r"^\+?[0-9]{7,15}$")

class PhoneVerifyIn(PhoneIn):
    otp: str = Field(min_length=1, max_length=16)

class ResetRequestIn(BaseModel):
    identifier: str = Field(min_length=1)
    role: Literal["student", "admin"]

class ResetConfirmIn(ResetRequestIn):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6)

class ResetOtpRequestIn(BaseModel):
    email: EmailStr

class ResetOtpConfirmIn(ResetOtpRequestIn):
    otp: str = Field(min_length=1, max_length=16)
    new_password: str = Field(min_length=6)
