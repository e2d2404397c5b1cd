from datetime import datetime, timezone
from enum import Enum as PyEnum

from flask_login import UserMixin
from sqlalchemy import (
    Enum, ForeignKey, UniqueConstraint, CheckConstraint, Index, Boolean, DateTime,
    Integer, String, Text, text
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Enums ----------
class HostelBlock(str, PyEnum):
    BLOCK1 = "block1"
    BLOCK2 = "block2"
    BLOCK3 = "block3"
    BLOCK4 = "block4"
    BLOCK5 = "block5"
    BLOCK6 = "block6"
    BLOCK7 = "block7"
    BLOCK8 = "block8"


class BedType(str, PyEnum):
    ONE = "1 bedded"
    TWO = "2 bedded"
    THREE = "3 bedded"
    FOUR = "4 bedded"

    @property
    def capacity(self) -> int:
        # "3 bedded" -> 3
        return int(self.value.split(" ", 1)[0])


class SwapStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def _values(enum_cls):
    # в БД храним значения ("4 bedded"), а не имена членов
    return [m.value for m in enum_cls]


hostel_block_enum = Enum(HostelBlock, name="hostel_block", values_callable=_values)
bed_type_enum = Enum(BedType, name="bed_type", values_callable=_values)
swap_status_enum = Enum(SwapStatus, name="swap_status", values_callable=_values)


# ---------- Inventory ----------
class Block(db.Model):
    __tablename__ = "blocks"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[HostelBlock] = mapped_column(hostel_block_enum, unique=True, nullable=False, index=True)
    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    rooms = relationship("Room", back_populates="block", cascade="all, delete-orphan",
                         order_by="Room.number")

    __table_args__ = (
        CheckConstraint("total_rooms >= 0", name="ck_blocks_total_rooms_non_negative"),
    )

    def next_room_number(self) -> int:
        return max((r.number for r in self.rooms), default=0) + 1

    def rooms_of_type(self, bed_type: BedType) -> list["Room"]:
        return [r for r in self.rooms if r.bed_type == bed_type]

    def __repr__(self):
        return f"<Block {self.name.value} rooms={self.total_rooms}>"


class Room(db.Model):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(primary_key=True)
    block_id: Mapped[int] = mapped_column(ForeignKey("blocks.id", ondelete="CASCADE"), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    bed_type: Mapped[BedType] = mapped_column(bed_type_enum, nullable=False)
    available_beds: Mapped[int] = mapped_column(Integer, nullable=False)

    block = relationship("Block", back_populates="rooms")

    __table_args__ = (
        UniqueConstraint("block_id", "number", name="uq_room_block_number"),
        CheckConstraint("available_beds >= 0", name="ck_rooms_available_beds_non_negative"),
        Index("ix_room_block_bed_type", "block_id", "bed_type"),
    )

    @property
    def capacity(self) -> int:
        return self.bed_type.capacity

    @property
    def occupied_beds(self) -> int:
        return self.capacity - self.available_beds

    def __repr__(self):
        return f"<Room {self.number} {self.bed_type.value} free={self.available_beds}>"


# ---------- Accounts ----------
class Admin(UserMixin, db.Model):
    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    role = "ADMIN"

    # Flask-Login: id с префиксом, админы и жильцы в разных таблицах
    def get_id(self):
        return f"admin:{self.id}"

    def __repr__(self):
        return f"<Admin {self.username}>"


class Resident(UserMixin, db.Model):
    """Жилец. Назначение (корпус, комната, тип) - ссылка по значению на Room;
    пустое назначение допустимо до подтверждения аккаунта."""
    __tablename__ = "residents"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    block: Mapped[HostelBlock | None] = mapped_column(hostel_block_enum, index=True)
    room_number: Mapped[int | None] = mapped_column(Integer)
    bed_type: Mapped[BedType | None] = mapped_column(bed_type_enum)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    role = "RESIDENT"

    __table_args__ = (
        Index("ix_resident_block_room", "block", "room_number"),
    )

    def get_id(self):
        return f"resident:{self.id}"

    @property
    def has_assignment(self) -> bool:
        return self.block is not None and self.room_number is not None

    @property
    def assignment(self):
        if not self.has_assignment:
            return None
        return (self.block, self.room_number, self.bed_type)

    def set_assignment(self, assignment) -> None:
        if assignment is None:
            self.block, self.room_number, self.bed_type = None, None, None
        else:
            self.block, self.room_number, self.bed_type = assignment

    def __repr__(self):
        return f"<Resident {self.id} {self.email or self.phone}>"


# ---------- Swaps ----------
class SwapRequest(db.Model):
    __tablename__ = "swap_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    requester_id: Mapped[int] = mapped_column(ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, index=True)
    target_id: Mapped[int] = mapped_column(ForeignKey("residents.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[SwapStatus] = mapped_column(swap_status_enum, nullable=False, default=SwapStatus.PENDING)
    message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    requester = relationship("Resident", foreign_keys=[requester_id])
    target = relationship("Resident", foreign_keys=[target_id])

    __table_args__ = (
        CheckConstraint("requester_id <> target_id", name="ck_swap_not_self"),
        # не больше одной pending-заявки на упорядоченную пару
        Index("uq_swap_pending_pair", "requester_id", "target_id", unique=True,
              sqlite_where=text("status = 'pending'"),
              postgresql_where=text("status = 'pending'")),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status != SwapStatus.PENDING

    def __repr__(self):
        return f"<SwapRequest {self.requester_id}->{self.target_id} {self.status.value}>"
