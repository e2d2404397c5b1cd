# blueprints/residents/services.py
from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from extensions import db
from models import Resident, Room
from blueprints.core.errors import ValidationError, NotFoundError, CapacityError, ConflictError
from blueprints.core.locks import KeyedLocks
from blueprints.inventory.services import (
    block_locks, coerce_block, coerce_bed_type, find_room,
)

log = logging.getLogger(__name__)

# поле назначения жильца меняется только под его блокировкой
resident_locks = KeyedLocks("residents")

def get_resident(resident_id: int, *, for_update: bool = False) -> Resident:
    q = db.session.query(Resident).filter(Resident.id == resident_id)
    if for_update:
        q = q.with_for_update()
    r = q.one_or_none()
    if r is None:
        raise NotFoundError("Resident", resident_id)
    return r

def list_residents(block=None, exclude_id: Optional[int] = None) -> List[Resident]:
    q = db.session.query(Resident)
    if block is not None:
        q = q.filter(Resident.block == coerce_block(block))
    if exclude_id is not None:
        q = q.filter(Resident.id != exclude_id)
    return q.order_by(Resident.id).all()

def _take_bed(block, room_number: int, bed_type=None) -> Room:
    room = find_room(block, room_number, for_update=True)
    if room is None:
        raise NotFoundError("Room", f"{coerce_block(block).value}/{room_number}")
    if bed_type is not None and room.bed_type != coerce_bed_type(bed_type):
        raise ValidationError(
            f"Room {room_number} is {room.bed_type.value}, not {coerce_bed_type(bed_type).value}",
            {"room_number": room_number, "bed_type": room.bed_type.value},
        )
    if room.available_beds < 1:
        raise CapacityError(f"Room {room_number} has no free beds", available=0, requested=1)
    room.available_beds -= 1
    return room

def _release_bed(resident: Resident) -> None:
    if not resident.has_assignment:
        return
    room = find_room(resident.block, resident.room_number, for_update=True)
    # комнату могли удалить в обход инвентаря - тогда освобождать нечего
    if room is not None and room.available_beds < room.capacity:
        room.available_beds += 1

def register_resident(*, name: str, email: str, password: str, block, room_number: int,
                      bed_type=None) -> Resident:
    """Регистрация студента сразу с местом в комнате."""
    b = coerce_block(block)
    email = email.strip().lower()
    with block_locks.hold(b.value):
        try:
            if db.session.query(Resident.id).filter(Resident.email == email).first():
                raise ConflictError("Email already registered", {"email": email})
            room = _take_bed(b, room_number, bed_type)
            resident = Resident(
                name=name, email=email, password_hash=generate_password_hash(password),
                block=b, room_number=room.number, bed_type=room.bed_type,
            )
            db.session.add(resident)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise ConflictError("Email already registered", {"email": email}) from e
        except Exception:
            db.session.rollback()
            raise
    log.info("resident registered", extra={"event": "resident_registered", "resident_id": resident.id,
                                           "block": b.value})
    return resident

def upsert_phone_resident(phone: str) -> Resident:
    """После проверки OTP: найти жильца по телефону или создать, пометив подтверждённым."""
    phone = phone.strip()
    try:
        resident = db.session.query(Resident).filter(Resident.phone == phone).one_or_none()
        if resident is None:
            resident = Resident(phone=phone, is_verified=True)
            db.session.add(resident)
        else:
            resident.is_verified = True
        db.session.commit()
    except IntegrityError:
        # параллельная регистрация того же телефона успела раньше
        db.session.rollback()
        resident = db.session.query(Resident).filter(Resident.phone == phone).one()
        resident.is_verified = True
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return resident

def assign_room(resident_id: int, block, room_number: int) -> Resident:
    """Переселить жильца: освободить старое место, занять новое. Всё или ничего."""
    target = coerce_block(block)
    with resident_locks.hold(resident_id):
        resident = get_resident(resident_id)
        blocks = {target.value}
        if resident.block is not None:
            blocks.add(resident.block.value)
        with block_locks.hold(*blocks):
            try:
                resident = get_resident(resident_id, for_update=True)
                if resident.block == target and resident.room_number == room_number:
                    return resident
                _release_bed(resident)
                room = _take_bed(target, room_number)
                resident.set_assignment((target, room.number, room.bed_type))
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
    log.info("room assigned", extra={"event": "room_assigned", "resident_id": resident_id,
                                     "block": target.value, "reason": {"room": room_number}})
    return resident

def vacate_room(resident_id: int) -> Resident:
    with resident_locks.hold(resident_id):
        resident = get_resident(resident_id)
        if not resident.has_assignment:
            return resident
        with block_locks.hold(resident.block.value):
            try:
                resident = get_resident(resident_id, for_update=True)
                _release_bed(resident)
                resident.set_assignment(None)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
    log.info("room vacated", extra={"event": "room_vacated", "resident_id": resident_id})
    return resident
