# blueprints/inventory/routes.py
from __future__ import annotations
from dataclasses import asdict

from flask import Blueprint, jsonify

from blueprints.auth.routes import admin_required
from blueprints.core.validators import parse_payload
from . import services as svc
from .schemas import RoomsChangeIn, BlockOut, BlockSummaryOut

api_bp = Blueprint("inventory_api", __name__)

def _block_json(block) -> dict:
    return BlockOut.model_validate(block).model_dump(mode="json")

@api_bp.post("/admin/rooms/increase")
@admin_required
def rooms_increase():
    data = parse_payload(RoomsChangeIn)
    block = svc.grow_rooms(data.block, data.count, data.bed_type)
    return jsonify({"ok": True, "message": "Rooms increased", "block": _block_json(block)})

@api_bp.post("/admin/rooms/decrease")
@admin_required
def rooms_decrease():
    data = parse_payload(RoomsChangeIn)
    block = svc.shrink_rooms(data.block, data.count, data.bed_type)
    return jsonify({
        "ok": True,
        "message": f"{data.count} {data.bed_type.value} room(s) removed from {data.block.value}",
        "block": _block_json(block),
    })

@api_bp.get("/admin/blocks")
@admin_required
def blocks_list():
    return jsonify({"ok": True, "items": [
        {"name": b.name.value, "total_rooms": b.total_rooms} for b in svc.list_blocks()
    ]})

@api_bp.get("/admin/blocks/<block>")
@admin_required
def block_detail(block: str):
    summary = svc.block_summary(block)
    return jsonify({
        "ok": True,
        "block": _block_json(svc.get_block(block)),
        "summary": BlockSummaryOut.model_validate(asdict(summary)).model_dump(mode="json"),
    })
