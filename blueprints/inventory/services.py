# blueprints/inventory/services.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy.exc import IntegrityError

from extensions import db
from models import Block, Room, Resident, HostelBlock, BedType
from blueprints.core.errors import ValidationError, NotFoundError, CapacityError, ConflictError
from blueprints.core.locks import KeyedLocks

log = logging.getLogger(__name__)

# check-then-mutate по одному корпусу идёт строго последовательно
block_locks = KeyedLocks("blocks")

# ===== приведение входа =====
def coerce_block(value) -> HostelBlock:
    try:
        return HostelBlock(value)
    except ValueError:
        raise ValidationError(f"Unknown hostel block: {value!r}",
                              {"allowed": [b.value for b in HostelBlock]})

def coerce_bed_type(value) -> BedType:
    try:
        return BedType(value)
    except ValueError:
        raise ValidationError(f"Unknown bed type: {value!r}",
                              {"allowed": [b.value for b in BedType]})

def coerce_count(value) -> int:
    # bool - подкласс int, его не пускаем
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("count must be an integer >= 1", {"count": value})
    return value

# ===== чтение =====
def _load_block(name: HostelBlock, *, for_update: bool = False) -> Block | None:
    q = db.session.query(Block).filter(Block.name == name)
    if for_update:
        q = q.with_for_update()
    return q.one_or_none()

def get_block(block) -> Block:
    name = coerce_block(block)
    b = _load_block(name)
    if b is None:
        raise NotFoundError("Block", name.value)
    return b

def list_blocks() -> List[Block]:
    return db.session.query(Block).order_by(Block.name).all()

def find_room(block, number: int, *, for_update: bool = False) -> Room | None:
    name = coerce_block(block)
    q = (db.session.query(Room).join(Block, Block.id == Room.block_id)
         .filter(Block.name == name, Room.number == number))
    if for_update:
        q = q.with_for_update()
    return q.one_or_none()

def occupied_room_numbers(block) -> set[int]:
    """Номера комнат корпуса, за которыми числится хотя бы один жилец."""
    name = coerce_block(block)
    rows = (db.session.query(Resident.room_number)
            .filter(Resident.block == name, Resident.room_number.isnot(None))
            .distinct().all())
    return {r[0] for r in rows}

@dataclass
class BedTypeSummary:
    rooms: int = 0
    free_beds: int = 0
    total_beds: int = 0

@dataclass
class BlockSummary:
    block: str
    total_rooms: int
    by_bed_type: Dict[str, BedTypeSummary] = field(default_factory=dict)

def block_summary(block) -> BlockSummary:
    b = get_block(block)
    out = BlockSummary(block=b.name.value, total_rooms=b.total_rooms,
                       by_bed_type={bt.value: BedTypeSummary() for bt in BedType})
    for r in b.rooms:
        s = out.by_bed_type[r.bed_type.value]
        s.rooms += 1
        s.free_beds += r.available_beds
        s.total_beds += r.capacity
    return out

# ===== изменение инвентаря =====
def grow_rooms(block, count, bed_type) -> Block:
    """Добавить ``count`` комнат типа ``bed_type``; корпус создаётся лениво.

    Номера идут подряд от (максимальный существующий + 1), так что после
    удалений номера не пересекаются.
    """
    name = coerce_block(block)
    count = coerce_count(count)
    bt = coerce_bed_type(bed_type)

    with block_locks.hold(name.value):
        try:
            b = _load_block(name, for_update=True)
            if b is None:
                b = Block(name=name, total_rooms=0)
                db.session.add(b)
                db.session.flush()
            start = b.next_room_number()
            for i in range(count):
                b.rooms.append(Room(number=start + i, bed_type=bt, available_beds=bt.capacity))
            b.total_rooms += count
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise ConflictError("Block inventory changed concurrently, retry",
                                {"block": name.value}) from e
        except Exception:
            db.session.rollback()
            raise

    log.info("rooms increased", extra={"event": "rooms_increased", "block": name.value,
                                       "bed_type": bt.value, "count": count})
    return b

def shrink_rooms(block, count, bed_type) -> Block:
    """Удалить ``count`` комнат типа ``bed_type``, начиная с самых больших номеров (LIFO).

    Заселённые комнаты не удаляются никогда: если свободных комнат этого типа
    меньше ``count`` - CapacityError, корпус не меняется.
    """
    name = coerce_block(block)
    count = coerce_count(count)
    bt = coerce_bed_type(bed_type)

    with block_locks.hold(name.value):
        try:
            b = _load_block(name, for_update=True)
            if b is None:
                raise NotFoundError("Block", name.value)

            of_type = b.rooms_of_type(bt)
            if len(of_type) < count:
                raise CapacityError(
                    f"Not enough {bt.value} rooms to remove. Available: {len(of_type)}, Requested: {count}",
                    available=len(of_type), requested=count,
                )

            occupied = occupied_room_numbers(name)
            removable = [r for r in of_type if r.number not in occupied and r.occupied_beds == 0]
            if len(removable) < count:
                raise CapacityError(
                    f"Not enough vacant {bt.value} rooms to remove. Available: {len(removable)}, Requested: {count}",
                    available=len(removable), requested=count,
                    details={"occupied_rooms": sorted(r.number for r in of_type if r not in removable)},
                )

            victims = sorted(removable, key=lambda r: r.number, reverse=True)[:count]
            removed_numbers = [r.number for r in victims]
            for r in victims:
                b.rooms.remove(r)  # delete-orphan
            b.total_rooms -= count
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    log.info("rooms decreased", extra={"event": "rooms_decreased", "block": name.value,
                                       "bed_type": bt.value, "count": count,
                                       "reason": {"removed": removed_numbers}})
    return b
