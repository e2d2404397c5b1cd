# blueprints/swap/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user

from blueprints.auth.routes import resident_required
from blueprints.core.validators import parse_payload
from blueprints.residents.routes import resident_json
from . import services as svc
from .schemas import SwapRequestIn, SwapDecisionIn, SwapRequestOut

api_bp = Blueprint("swap_api", __name__)

def _swap_json(req) -> dict:
    out = SwapRequestOut.model_validate(req).model_dump(mode="json")
    out["direction"] = "sent" if req.requester_id == current_user.id else "received"
    return out

@api_bp.post("/swap/request")
@resident_required
def swap_request():
    data = parse_payload(SwapRequestIn)
    req = svc.request_swap(current_user.id, data.target_id, data.message)
    return jsonify({"ok": True, "message": "Swap request sent", "swap": _swap_json(req)}), 201

@api_bp.post("/swap/accept")
@resident_required
def swap_accept():
    data = parse_payload(SwapDecisionIn)
    outcome = svc.accept_swap(current_user.id, data.requester_id)
    return jsonify({
        "ok": True,
        "message": "Swap accepted",
        "swap": _swap_json(outcome.request),
        "requester": resident_json(outcome.requester),
        "accepter": resident_json(outcome.accepter),
    })

@api_bp.post("/swap/reject")
@resident_required
def swap_reject():
    data = parse_payload(SwapDecisionIn)
    req = svc.reject_swap(current_user.id, data.requester_id)
    return jsonify({"ok": True, "message": "Swap rejected", "swap": _swap_json(req)})

@api_bp.get("/swap/list")
@resident_required
def swap_list():
    return jsonify({"ok": True, "swaps": [_swap_json(r) for r in svc.list_swaps(current_user.id)]})
