# blueprints/residents/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from blueprints.auth.routes import admin_required
from blueprints.core.validators import parse_payload
from . import services as svc
from .schemas import ResidentOut, AssignRoomIn

api_bp = Blueprint("residents_api", __name__)

def resident_json(resident) -> dict:
    return ResidentOut.model_validate(resident).model_dump(mode="json")

@api_bp.get("/residents")
@login_required
def residents_list():
    # жилец видит остальных (кандидаты на обмен), админ - всех
    exclude = current_user.id if current_user.role == "RESIDENT" else None
    items = svc.list_residents(block=request.args.get("block") or None, exclude_id=exclude)
    return jsonify({"ok": True, "items": [resident_json(r) for r in items]})

@api_bp.get("/residents/<int:resident_id>")
@login_required
def resident_detail(resident_id: int):
    return jsonify({"ok": True, "resident": resident_json(svc.get_resident(resident_id))})

@api_bp.post("/admin/residents/<int:resident_id>/assign")
@admin_required
def resident_assign(resident_id: int):
    data = parse_payload(AssignRoomIn)
    resident = svc.assign_room(resident_id, data.block, data.room_number)
    return jsonify({"ok": True, "resident": resident_json(resident)})

@api_bp.post("/admin/residents/<int:resident_id>/vacate")
@admin_required
def resident_vacate(resident_id: int):
    return jsonify({"ok": True, "resident": resident_json(svc.vacate_room(resident_id))})
