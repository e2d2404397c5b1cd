# blueprints/swap/services.py
"""Обмен комнатами между двумя жильцами.

Заявка (A -> B) живёт в состояниях pending -> accepted | rejected; терминальные
состояния не меняются. На упорядоченную пару допускается одна pending-заявка:
повторный запрос отклоняется ConflictError. Принятие меняет назначения обоих
жильцов и статус заявки в одной транзакции - либо всё, либо ничего.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from extensions import db, events
from models import Resident, SwapRequest, SwapStatus
from blueprints.core.errors import ValidationError, NotFoundError, ConflictError
from blueprints.core.locks import KeyedLocks
from blueprints.inventory.services import find_room
from blueprints.notifications.events import EventType
from blueprints.residents.services import get_resident, resident_locks

log = logging.getLogger(__name__)

pair_locks = KeyedLocks("swap_pairs")

MAX_MESSAGE_LEN = 1000

@dataclass
class SwapOutcome:
    request: SwapRequest
    requester: Resident
    accepter: Resident

def _pair_key(requester_id: int, target_id: int) -> str:
    return f"{requester_id}->{target_id}"

def _pending(requester_id: int, target_id: int, *, for_update: bool = False) -> Optional[SwapRequest]:
    q = db.session.query(SwapRequest).filter(
        SwapRequest.requester_id == requester_id,
        SwapRequest.target_id == target_id,
        SwapRequest.status == SwapStatus.PENDING,
    )
    if for_update:
        q = q.with_for_update()
    return q.one_or_none()

def _check_room(resident: Resident) -> None:
    """Назначение жильца должно указывать на существующую комнату того же типа."""
    if not resident.has_assignment:
        raise ConflictError("Resident has no room assigned", {"resident_id": resident.id})
    room = find_room(resident.block, resident.room_number, for_update=True)
    if room is None or room.bed_type != resident.bed_type:
        raise ConflictError(
            "Resident's room no longer exists",
            {"resident_id": resident.id, "block": resident.block.value, "room_number": resident.room_number},
        )

def request_swap(requester_id: int, target_id: int, message: Optional[str] = None) -> SwapRequest:
    if requester_id == target_id:
        raise ValidationError("Cannot request a swap with yourself")
    if message is not None:
        message = message.strip() or None
        if message and len(message) > MAX_MESSAGE_LEN:
            raise ValidationError("message is too long", {"max_length": MAX_MESSAGE_LEN})

    with pair_locks.hold(_pair_key(requester_id, target_id)):
        try:
            get_resident(requester_id)
            get_resident(target_id)
            if _pending(requester_id, target_id) is not None:
                raise ConflictError("A pending swap request already exists for this pair",
                                    {"requester_id": requester_id, "target_id": target_id})
            req = SwapRequest(requester_id=requester_id, target_id=target_id,
                              status=SwapStatus.PENDING, message=message)
            db.session.add(req)
            db.session.commit()
        except IntegrityError as e:
            # партиальный уникальный индекс поймал гонку из другого процесса
            db.session.rollback()
            raise ConflictError("A pending swap request already exists for this pair",
                                {"requester_id": requester_id, "target_id": target_id}) from e
        except Exception:
            db.session.rollback()
            raise

    log.info("swap requested", extra={"event": "swap_requested", "swap_id": req.id,
                                      "resident_id": requester_id})
    events.publish(EventType.SWAP_REQUESTED, swap_id=req.id,
                   requester_id=requester_id, target_id=target_id)
    return req

def accept_swap(accepter_id: int, requester_id: int) -> SwapOutcome:
    """Принять заявку requester -> accepter и обменять назначения жильцов."""
    with resident_locks.hold(accepter_id, requester_id), \
            pair_locks.hold(_pair_key(requester_id, accepter_id)):
        try:
            req = _pending(requester_id, accepter_id, for_update=True)
            if req is None:
                raise NotFoundError("Pending swap request", _pair_key(requester_id, accepter_id))
            requester = get_resident(requester_id, for_update=True)
            accepter = get_resident(accepter_id, for_update=True)
            _check_room(requester)
            _check_room(accepter)

            a, b = requester.assignment, accepter.assignment
            requester.set_assignment(b)
            accepter.set_assignment(a)
            req.status = SwapStatus.ACCEPTED
            req.decided_at = datetime.now(timezone.utc)
            db.session.commit()
        except Exception:
            # откат возвращает обоих жильцов и статус заявки как были
            db.session.rollback()
            raise

    log.info("swap accepted", extra={"event": "swap_accepted", "swap_id": req.id,
                                     "resident_id": accepter_id})
    events.publish(EventType.SWAP_STATUS_CHANGED, swap_id=req.id, status=req.status.value,
                   requester_id=requester_id, target_id=accepter_id)
    return SwapOutcome(request=req, requester=requester, accepter=accepter)

def reject_swap(accepter_id: int, requester_id: int) -> SwapRequest:
    with pair_locks.hold(_pair_key(requester_id, accepter_id)):
        try:
            req = _pending(requester_id, accepter_id, for_update=True)
            if req is None:
                raise NotFoundError("Pending swap request", _pair_key(requester_id, accepter_id))
            req.status = SwapStatus.REJECTED
            req.decided_at = datetime.now(timezone.utc)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    log.info("swap rejected", extra={"event": "swap_rejected", "swap_id": req.id,
                                     "resident_id": accepter_id})
    events.publish(EventType.SWAP_STATUS_CHANGED, swap_id=req.id, status=req.status.value,
                   requester_id=requester_id, target_id=accepter_id)
    return req

def list_swaps(resident_id: int) -> List[SwapRequest]:
    """Все заявки, где жилец - инициатор или адресат; новые первыми."""
    return (db.session.query(SwapRequest)
            .filter(or_(SwapRequest.requester_id == resident_id,
                        SwapRequest.target_id == resident_id))
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            .all())
